"""
Main entry point for the harvester command line.
"""

import argparse
import signal
import sys
from typing import Optional

from pydantic import ValidationError

from harvester.config import PipelineConfig, RetryConfig, Settings
from harvester.exceptions import ConfigurationError, FatalIOError, ShardCollectionError
from harvester.models import RunSummary
from harvester.pipeline import PipelineDriver


# Global driver for signal handling
_driver: Optional[PipelineDriver] = None


def signal_handler(signum, frame):
    """First SIGINT stops gracefully; a second one interrupts immediately."""
    print("\n\n" + "=" * 60)
    print("STOP SIGNAL RECEIVED - FINISHING IN-FLIGHT LINKS")
    print("Press Ctrl+C again to interrupt immediately")
    print("=" * 60)
    signal.signal(signal.SIGINT, signal.default_int_handler)
    if _driver:
        _driver.stop()
    else:
        raise KeyboardInterrupt


def build_parser(settings: Optional[Settings] = None) -> argparse.ArgumentParser:
    settings = settings or Settings()

    parser = argparse.ArgumentParser(
        prog='harvester',
        description='Fetch a list of URLs concurrently and merge the extracted records into one CSV file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fetch every link in links.txt through a proxy
  harvester links.txt --proxy http://proxy:3128 --output events.csv

  # Resume after a crash without prompting
  harvester links.txt --output events.csv --yes

  # Only merge the shards a crashed run left behind
  harvester --collect-only --output events.csv

  # Use a custom extractor
  harvester links.csv --extractor mypackage.extract:parse_page

Press Enter while running to pause or resume (SIGUSR1 also toggles pause).
"""
    )

    parser.add_argument(
        'input',
        nargs='?',
        help='Text file with one URL per line, or CSV with Url (and optional Id) columns'
    )

    # Paths
    parser.add_argument(
        '-o', '--output',
        default=settings.output,
        help=f'Merged CSV output (default: {settings.output})'
    )
    parser.add_argument(
        '--failed',
        default=settings.failed,
        help=f'File receiving links whose retries ran out (default: {settings.failed})'
    )
    parser.add_argument(
        '--completed',
        default=settings.completed,
        help=f'Checkpoint ledger of completed links (default: {settings.completed})'
    )
    parser.add_argument(
        '--shard-dir',
        help='Directory for partial results (default: <output>.shards)'
    )

    # Fetching
    parser.add_argument(
        '--proxy',
        default=settings.proxy,
        help='Proxy URL for every request'
    )
    parser.add_argument(
        '--extractor',
        default=settings.extractor,
        help=f'Built-in extractor name or package.module:callable (default: {settings.extractor})'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        default=settings.timeout,
        help=f'Per-request timeout in seconds for built-in extractors (default: {settings.timeout})'
    )

    # Concurrency and retries
    parser.add_argument(
        '-r', '--retries',
        type=int,
        default=settings.retries,
        help=f'Retries per link after the first attempt (default: {settings.retries})'
    )
    parser.add_argument(
        '-w', '--workers',
        type=int,
        default=settings.workers,
        help='Concurrent workers (default: number of CPUs)'
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=settings.delay,
        help=f'Seconds a worker sleeps after each successful link (default: {settings.delay})'
    )

    # Modes
    parser.add_argument(
        '--collect-only',
        action='store_true',
        help='Skip fetching and only merge existing shards into the output'
    )
    parser.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Answer prompts automatically: keep the checkpoint ledger, overwrite stale output'
    )

    return parser


def config_from_args(args, settings: Optional[Settings] = None) -> PipelineConfig:
    settings = settings or Settings()
    return PipelineConfig(
        input_path=args.input,
        output_path=args.output,
        failed_path=args.failed,
        completed_path=args.completed,
        shard_dir=args.shard_dir,
        proxy=args.proxy,
        retry=RetryConfig(max_retries=args.retries),
        workers=args.workers,
        delay=args.delay,
        extractor=args.extractor,
        timeout=args.timeout,
        collect_only=args.collect_only,
        assume_yes=args.yes,
        progress_every=settings.progress_every
    )


def print_summary(result: RunSummary):
    print("\n" + "=" * 60)
    print("COLLECT COMPLETE" if result.collect_only else "RUN COMPLETE")
    print("=" * 60)
    if not result.collect_only:
        print(f"Total:       {result.total}")
        print(f"Succeeded:   {result.succeeded}")
        print(f"Failed:      {result.failed}")
        print(f"Skipped:     {result.skipped}")
        if result.interrupted:
            print(f"Unfinished:  {result.total - result.succeeded - result.failed} (interrupted)")
    print(f"Merged rows: {result.merged_records}")
    print(f"Duration:    {result.duration_seconds:.1f} seconds")
    if not result.collect_only:
        print(f"Speed:       {result.links_per_hour:.1f} links/hour")


def describe_settings_error(error: ValidationError) -> str:
    """Summarize invalid HARVESTER_* values, e.g. `HARVESTER_RETRIES: Input should be a valid integer`."""
    problems = []
    for item in error.errors():
        name = "_".join(str(part) for part in item.get("loc", ())).upper()
        problems.append(f"HARVESTER_{name}: {item.get('msg')}" if name else str(item.get("msg")))
    return "; ".join(problems)


def main(argv=None) -> int:
    global _driver

    try:
        settings = Settings()
    except ValidationError as e:
        print(f"✗ Configuration error: {describe_settings_error(e)}")
        return 1
    args = build_parser(settings).parse_args(argv)

    previous_handlers = {}
    try:
        config = config_from_args(args, settings)
        _driver = PipelineDriver(config)

        previous_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, signal_handler)
        # SIGTERM is not reliably available on Windows
        if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
            previous_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, signal_handler)

        result = _driver.run()
    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}")
        return 1
    except FatalIOError as e:
        print(f"✗ Run aborted, could not write {e.path}: {e.reason}")
        return 1
    except ShardCollectionError as e:
        print(f"✗ Merge aborted: {e}")
        print("  Shard store left in place; fix or remove the shard and rerun with --collect-only")
        return 1
    except KeyboardInterrupt:
        print("\n" + "=" * 60)
        print("RUN INTERRUPTED")
        print("=" * 60)
        print("Completed links are kept in the checkpoint ledger and shard store")
        print("Rerun to resume, or use --collect-only to merge what was fetched")
        return 130
    finally:
        _driver = None
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    print_summary(result)
    if config.failed_path.exists() and result.failed:
        print(f"\nFailed links written to {config.failed_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
