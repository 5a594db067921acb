"""Exception hierarchy for the block scraper.

Per-block errors (FetchError, PersistenceError, StatusUpdateError) are
caught by the worker that raised them and reported as ``failed`` progress
events. Only SetupError and ProcessingCancelled escape a processor run.
"""


class ScrapError(Exception):
    """Base class for all scraper errors."""


class ConfigurationError(ScrapError, ValueError):
    """Invalid processor or CLI configuration."""


class SetupError(ScrapError):
    """The pending height set could not be computed."""


class FetchError(ScrapError):
    """A source call failed for a block."""


class RpcError(FetchError):
    """Bitcoin Core answered a JSON-RPC call with an error."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class BlockNotFoundError(RpcError):
    """The requested height is beyond the chain tip."""


class PersistenceError(ScrapError):
    """A block or transaction write failed."""


class StatusUpdateError(ScrapError):
    """A processing status transition could not be written."""


class ProcessingCancelled(ScrapError):
    """The run was cancelled before every pending height was started."""


class StreamClosedError(ScrapError, RuntimeError):
    """An event was emitted after the progress stream closed."""
