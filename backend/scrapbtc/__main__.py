"""CLI entry point for the block scraper.

Usage:
    python -m scrapbtc --user rpc --pass secret
    python -m scrapbtc --user rpc --pass secret --from 2024-01-01 --to 2024-06-30
    python -m scrapbtc --user rpc --pass secret --from-height 800000 --to-height 800100 -w 4
    python -m scrapbtc --status --from-height 800000 --to-height 800100
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone

from scrapbtc.clients import BitcoinRpcClient
from scrapbtc.config import get_settings
from scrapbtc.exceptions import ConfigurationError, ProcessingCancelled, ScrapError
from scrapbtc.heights import calculate_height_range
from scrapbtc.processor import BlockRangeProcessor, ProcessorConfig
from scrapbtc.progress import ProgressReporter
from scrapbtc.storage import Database, ProcessingStatusRepository, SqlBlockStore, init_database

logger = logging.getLogger("scrapbtc")


def parse_date(date_str: str) -> datetime:
    """Parse YYYY-MM-DD to timezone-aware datetime."""
    try:
        dt = datetime.strptime(date_str, "%Y-%m-%d")
        return dt.replace(tzinfo=timezone.utc)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {date_str} (expected YYYY-MM-DD)"
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="scrapbtc",
        description=(
            "Fast, concurrent Bitcoin blockchain scraper: extracts block and "
            "transaction data from Bitcoin Core RPC into a SQL database."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m scrapbtc -u rpc -p secret
  python -m scrapbtc -u rpc -p secret --from 2024-01-01 --to 2024-06-30
  python -m scrapbtc -u rpc -p secret --from-height 800000 --to-height 800100 -w 4
  python -m scrapbtc --status --from-height 800000 --to-height 800100
        """,
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Show processing status of a height range and exit",
    )
    parser.add_argument(
        "--database", "-d",
        dest="database_url",
        default=settings.database_url,
        help=f"Database URL (default: {settings.database_url})",
    )
    parser.add_argument(
        "--host", "-H",
        default=settings.rpc_host,
        help=f"Bitcoin RPC host and port (default: {settings.rpc_host})",
    )
    parser.add_argument("--user", "-u", default=settings.rpc_user, help="Bitcoin RPC username")
    parser.add_argument(
        "--pass", "-p",
        dest="password",
        default=settings.rpc_password,
        help="Bitcoin RPC password",
    )
    parser.add_argument(
        "--from", "-f",
        dest="start_date",
        type=parse_date,
        default=None,
        help="Start date (YYYY-MM-DD), default: 1 year ago",
    )
    parser.add_argument(
        "--to", "-t",
        dest="end_date",
        type=parse_date,
        default=None,
        help="End date (YYYY-MM-DD), default: today",
    )
    parser.add_argument("--from-height", type=int, default=None, help="Start height (overrides --from)")
    parser.add_argument("--to-height", type=int, default=None, help="End height (overrides --to)")
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=settings.workers,
        help=f"Number of concurrent workers (default: {settings.workers})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(argv)


def install_signal_handlers(cancel: asyncio.Event) -> None:
    """Map SIGINT/SIGTERM to cooperative cancellation."""
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, cancel.set)
    except (ValueError, RuntimeError, NotImplementedError):
        # Not the main thread, or no signal support (Windows)
        pass


async def cmd_status(args: argparse.Namespace, db: Database) -> int:
    """Print the status ledger summary."""
    repo = ProcessingStatusRepository(db)
    max_height = await repo.get_max_completed_height()
    print(f"Highest completed block: {'-' if max_height is None else max_height}")

    if args.from_height is not None and args.to_height is not None:
        counts = await repo.count_by_state(args.from_height, args.to_height)
        total = args.to_height - args.from_height + 1
        print(f"Blocks {args.from_height}-{args.to_height} ({total} total):")
        for state, count in sorted(counts.items(), key=lambda item: item[0].value):
            print(f"  {state.value:<12} {count:>8}")
        print(f"  {'not started':<12} {total - sum(counts.values()):>8}")
    return 0


async def cmd_scrape(args: argparse.Namespace, db: Database) -> int:
    """Process a block range with a live progress display."""
    settings = get_settings()
    if not args.user or not args.password:
        print("Error: --user and --pass are required (or SCRAPBTC_RPC_USER / SCRAPBTC_RPC_PASSWORD)")
        return 2

    client = BitcoinRpcClient(
        host=args.host,
        user=args.user,
        password=args.password,
        timeout=settings.rpc_timeout,
    )
    try:
        await client.connect()
        best_height = await client.get_best_height()
        start_height, end_height = calculate_height_range(best_height, args.start_date, args.end_date)
        if args.from_height is not None:
            start_height = args.from_height
        if args.to_height is not None:
            end_height = min(args.to_height, best_height)

        config = ProcessorConfig(
            from_height=start_height,
            to_height=end_height,
            pool_size=args.workers,
        )
        print(
            f"Processing blocks from height {start_height} to {end_height} "
            f"({config.total_blocks} blocks total)"
        )

        processor = BlockRangeProcessor(config, source=client, store=SqlBlockStore(db))
        reporter = ProgressReporter(
            processor.events,
            start_height,
            end_height,
            refresh_interval=settings.refresh_interval,
        )

        cancel = asyncio.Event()
        install_signal_handlers(cancel)

        run_task = asyncio.create_task(processor.run(cancel), name="block-processor")
        try:
            state = await reporter.run()
        except Exception as e:
            # Workers block on a full stream, so stop them and drain it
            logger.error(f"Progress reporter failed: {e}")
            cancel.set()
            async for _ in processor.events:
                pass
            await asyncio.gather(run_task, return_exceptions=True)
            raise

        try:
            await run_task
        except ProcessingCancelled as e:
            print(f"Cancelled: {e}. Run again to resume.")
            return 130
        return 1 if state.failed else 0
    finally:
        await client.close()


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Configure logging; keep the interactive view clean unless verbose
    if args.verbose:
        level = logging.DEBUG
    elif sys.stdout.isatty() and not args.status:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    db = await init_database(args.database_url)
    try:
        if args.status:
            return await cmd_status(args, db)
        return await cmd_scrape(args, db)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 2
    except ScrapError as e:
        print(f"Error: {e}")
        return 1
    finally:
        await db.close()


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
