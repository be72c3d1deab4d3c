"""CLI command for running a single check-in through the mint pipeline.

Usage:
    python -m attendance_nft.cli.check_in --event-id EVENT --attendee-id ATTENDEE [OPTIONS]

Examples:
    # Check an attendee in now
    python -m attendance_nft.cli.check_in --event-id evt-abc --attendee-id gst-123

    # Replay a check-in with its original timestamp
    python -m attendance_nft.cli.check_in --event-id evt-abc --attendee-id gst-123 \\
        --check-in-time 2026-05-01T18:30:00Z

    # Verbose logging
    python -m attendance_nft.cli.check_in --event-id evt-abc --attendee-id gst-123 -v
"""

import asyncio
import json
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional, Sequence

import structlog

from attendance_nft.bootstrap import build_pipeline
from attendance_nft.core import timezone  # noqa: F401
from attendance_nft.core.config import Settings, configure_logging
from attendance_nft.core.database import setup_db_session
from attendance_nft.core.timezone import utcnow
from attendance_nft.services.exceptions import NotAuthorizedError
from attendance_nft.uow import create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Process one Luma check-in and mint its attendance NFT",
        epilog="Safe to repeat: an attendee already minted for the event is reported, not re-minted",
    )

    parser.add_argument("--event-id", required=True, help="Luma event identifier")
    parser.add_argument("--attendee-id", required=True, help="Luma attendee identifier")
    parser.add_argument(
        "--check-in-time",
        help="Check-in timestamp, ISO-8601 (default: now, UTC)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (completed), 1 (rejected, failed or error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    check_in_time = args.check_in_time or utcnow().isoformat() + "Z"
    logger.info(
        "cli.started",
        event_id=args.event_id,
        attendee_id=args.attendee_id,
        check_in_time=check_in_time,
    )

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    try:
        pipeline = await build_pipeline(settings, uow_factory)
        result = await pipeline.orchestrator.handle_check_in(
            args.event_id, args.attendee_id, check_in_time
        )
    except NotAuthorizedError as e:
        logger.error("cli.minter_not_authorized", error=str(e))
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nCheck-in interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_response(), indent=2))
    logger.info(
        "cli.finished",
        state=result.state.value,
        reason=result.reason.value if result.reason else None,
    )
    return 0 if result.success else 1


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
