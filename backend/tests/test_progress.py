"""Tests for the console progress reporter."""

import asyncio
import io

import pytest

from scrapbtc.exceptions import FetchError
from scrapbtc.models import ProgressEvent, ProgressStatus
from scrapbtc.processor import EventStream
from scrapbtc.progress import MAX_RECENT_ERRORS, ProgressReporter, ProgressState, format_duration


def completed(height: int, tx_count: int) -> ProgressEvent:
    return ProgressEvent(status=ProgressStatus.COMPLETED, height=height, tx_count=tx_count)


def failed(height: int, message: str = "timeout") -> ProgressEvent:
    return ProgressEvent(status=ProgressStatus.FAILED, height=height, error=FetchError(message))


async def report(events, interactive: bool, start: int = 0, end: int = 3):
    stream = EventStream(capacity=len(events) + 1)
    for e in events:
        await stream.emit(e)
    stream.close()

    out = io.StringIO()
    reporter = ProgressReporter(stream, start, end, out=out, interactive=interactive, refresh_interval=0.01)
    state = await reporter.run()
    return state, out.getvalue()


class TestFormatDuration:

    def test_formats(self):
        assert format_duration(7) == "7s"
        assert format_duration(125) == "2m5s"
        assert format_duration(3723.9) == "1h2m3s"


class TestProgressState:

    def test_totals(self):
        state = ProgressState(start_height=10, end_height=19)
        state.apply(ProgressEvent(status=ProgressStatus.PROCESSING, height=10))
        state.apply(ProgressEvent(status=ProgressStatus.PROCESSING_TRANSACTIONS, height=10, tx_count=100))
        assert state.current_block_txs == 100
        assert state.processed == 0

        state.apply(completed(10, 250))
        state.apply(completed(11, 50))
        state.apply(failed(12))

        assert state.total_blocks == 10
        assert state.processed == 2
        assert state.failed == 1
        assert state.total_txs == 300
        assert state.percent == pytest.approx(20.0)
        assert list(state.errors) == ["Block 12: timeout"]

    def test_recent_errors_are_bounded(self):
        state = ProgressState(start_height=0, end_height=99)
        for h in range(MAX_RECENT_ERRORS + 3):
            state.apply(failed(h))

        assert state.failed == MAX_RECENT_ERRORS + 3
        assert len(state.errors) == MAX_RECENT_ERRORS
        assert state.errors[0] == "Block 3: timeout"

    def test_eta_unknown_before_first_block(self):
        state = ProgressState(start_height=0, end_height=9)
        assert state.eta() is None
        state.apply(completed(0, 1))
        assert state.eta() >= 0

    def test_all_already_processed(self):
        state = ProgressState(start_height=0, end_height=9)
        state.apply(ProgressEvent(status=ProgressStatus.ALL_ALREADY_PROCESSED))
        assert state.all_already_processed
        assert state.processed == 0


class TestProgressReporter:

    @pytest.mark.asyncio
    async def test_plain_output(self):
        state, text = await report([completed(0, 3), failed(1), completed(2, 1200)], interactive=False)

        assert state.processed == 2
        assert state.failed == 1
        assert text.startswith("Processing blocks from 0 to 3 (4 blocks total)\n")
        assert "Processed block 0 (3 txs) - Progress: 25.0% (1/4)" in text
        assert "Error processing block 1: timeout" in text
        assert "Processed block 2 (1200 txs) - Progress: 50.0% (2/4)" in text
        assert "Processing completed!" in text
        assert "Total transactions: 1,203" in text

    @pytest.mark.asyncio
    async def test_plain_output_skips_heartbeats(self):
        heartbeat = ProgressEvent(status=ProgressStatus.PROCESSING_TRANSACTIONS, height=0, tx_count=100)
        _, text = await report([heartbeat], interactive=False)
        assert "Processed block" not in text

    @pytest.mark.asyncio
    async def test_all_already_processed_summary(self):
        _, text = await report(
            [ProgressEvent(status=ProgressStatus.ALL_ALREADY_PROCESSED)], interactive=False
        )
        assert "All blocks already processed" in text
        assert "Processing completed!" not in text

    @pytest.mark.asyncio
    async def test_interactive_redraws_in_place(self):
        _, text = await report([completed(0, 3), failed(1, "Block not found")], interactive=True)

        assert "Bitcoin Blockchain Scraper" in text
        assert "\x1b[" in text
        assert "Recent Errors:" in text
        assert "Block 1: Block not found" in text
        assert "Processing completed!" in text

    @pytest.mark.asyncio
    async def test_timeout_redraws_without_events(self):
        stream = EventStream(capacity=2)
        out = io.StringIO()
        reporter = ProgressReporter(stream, 0, 9, out=out, interactive=True, refresh_interval=0.01)

        task = asyncio.create_task(reporter.run())
        await asyncio.sleep(0.05)
        assert "Processed: 0/10 blocks" in out.getvalue()

        stream.close()
        state = await asyncio.wait_for(task, timeout=1)
        assert state.processed == 0

    def test_render_bar(self):
        reporter = ProgressReporter(EventStream(capacity=1), 0, 3, out=io.StringIO(), interactive=True)
        reporter.state.apply(completed(0, 1))
        reporter.state.apply(completed(1, 1))

        bar = reporter.render_bar()
        assert bar.count("█") == 25
        assert bar.endswith("50.0%")
