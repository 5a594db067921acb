"""Console progress reporting for a processing run.

The reporter polls the event stream with a short timeout: every event
updates the cached state, and every timeout redraws it so elapsed time
and ETA keep moving while workers are busy. Closing the stream ends the
loop.
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TextIO

from scrapbtc.models import ProgressEvent, ProgressStatus
from scrapbtc.processor.events import EventStream

MAX_RECENT_ERRORS = 5
BAR_WIDTH = 50


def format_duration(seconds: float) -> str:
    """Format seconds as 1h2m3s."""
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


@dataclass
class ProgressState:
    """Running totals for one processing run."""

    start_height: int
    end_height: int
    processed: int = 0
    failed: int = 0
    total_txs: int = 0
    current_height: int | None = None
    current_block_txs: int = 0
    errors: deque[str] = field(default_factory=lambda: deque(maxlen=MAX_RECENT_ERRORS))
    all_already_processed: bool = False
    started_at: float = field(default_factory=time.monotonic)

    @property
    def total_blocks(self) -> int:
        return self.end_height - self.start_height + 1

    @property
    def percent(self) -> float:
        if self.total_blocks <= 0:
            return 0.0
        return self.processed / self.total_blocks * 100

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def eta(self) -> float | None:
        """Seconds left at the current block rate, None before the first block."""
        if self.processed == 0:
            return None
        per_block = self.elapsed / self.processed
        return per_block * max(self.total_blocks - self.processed, 0)

    def apply(self, event: ProgressEvent) -> None:
        """Fold one event into the totals."""
        if event.status == ProgressStatus.FAILED:
            self.failed += 1
            self.errors.append(f"Block {event.height}: {event.error}")
        elif event.status == ProgressStatus.COMPLETED:
            self.processed += 1
            self.total_txs += event.tx_count
            self.current_height = event.height
            self.current_block_txs = event.tx_count
        elif event.status == ProgressStatus.PROCESSING_TRANSACTIONS:
            self.current_height = event.height
            self.current_block_txs = event.tx_count
        elif event.status == ProgressStatus.ALL_ALREADY_PROCESSED:
            self.all_already_processed = True


class ProgressReporter:
    """Render progress events to a terminal or a plain log stream."""

    def __init__(
        self,
        stream: EventStream,
        start_height: int,
        end_height: int,
        out: TextIO | None = None,
        interactive: bool | None = None,
        refresh_interval: float = 0.1,
    ):
        self._stream = stream
        self._out = out or sys.stdout
        self.interactive = self._out.isatty() if interactive is None else interactive
        self.refresh_interval = refresh_interval
        self.state = ProgressState(start_height=start_height, end_height=end_height)
        self._lines_drawn = 0

    async def run(self) -> ProgressState:
        """Consume the stream until it closes. Returns the final state."""
        if not self.interactive:
            self._write(
                f"Processing blocks from {self.state.start_height} to {self.state.end_height} "
                f"({self.state.total_blocks} blocks total)\n"
            )

        while True:
            try:
                event = await self._stream.receive(timeout=self.refresh_interval)
            except asyncio.TimeoutError:
                if self.interactive:
                    self._redraw()
                continue

            if event is None:
                break
            self.state.apply(event)
            if self.interactive:
                self._redraw()
            else:
                self._print_event(event)

        self._print_summary()
        return self.state

    # ── Rendering ───────────────────────────────────────────────

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def render_bar(self) -> str:
        filled = int(self.state.percent / 100 * BAR_WIDTH)
        bar = "█" * filled + "░" * (BAR_WIDTH - filled)
        return f"[{bar}] {self.state.percent:.1f}%"

    def render(self) -> list[str]:
        """Lines of the interactive view."""
        s = self.state
        eta = s.eta()
        current = "-" if s.current_height is None else str(s.current_height)
        lines = [
            "Bitcoin Blockchain Scraper",
            "",
            self.render_bar(),
            "",
            f"Range: {s.start_height} - {s.end_height} | Current: {current}",
            f"Processed: {s.processed}/{s.total_blocks} blocks ({s.percent:.1f}%)",
            f"Transactions: {s.total_txs:,} total | {s.current_block_txs:,} in current block",
            f"Elapsed: {format_duration(s.elapsed)} | ETA: {'-' if eta is None else format_duration(eta)}",
            f"Failed: {s.failed} blocks",
        ]
        if s.errors:
            lines += ["", "Recent Errors:"]
            lines += [f"  • {err}" for err in s.errors]
        return lines

    def _redraw(self) -> None:
        lines = self.render()
        # Move to the start of the previous frame and clear it
        prefix = f"\x1b[{self._lines_drawn}F\x1b[J" if self._lines_drawn else ""
        self._write(prefix + "\n".join(lines) + "\n")
        self._lines_drawn = len(lines)

    def _print_event(self, event: ProgressEvent) -> None:
        s = self.state
        if event.status == ProgressStatus.FAILED:
            self._write(f"Error processing block {event.height}: {event.error}\n")
        elif event.status == ProgressStatus.COMPLETED:
            self._write(
                f"Processed block {event.height} ({event.tx_count} txs) - "
                f"Progress: {s.percent:.1f}% ({s.processed}/{s.total_blocks})\n"
            )

    def _print_summary(self) -> None:
        s = self.state
        if s.all_already_processed:
            self._write("All blocks already processed\n")
            return
        self._write(
            "\nProcessing completed!\n"
            f"Processed: {s.processed} blocks\n"
            f"Failed: {s.failed} blocks\n"
            f"Total transactions: {s.total_txs:,}\n"
            f"Total time: {format_duration(s.elapsed)}\n"
        )
