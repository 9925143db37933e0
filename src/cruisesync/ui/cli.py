from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from cruisesync.app import (
    IngestResult,
    QualityReport,
    quality_report,
    repair_report,
    replay_session,
    run_remote_session,
)
from cruisesync.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cruisesync.domain.repair import RepairSummary

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise cruise offers, bookings and loyalty")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Run a session from a recorded extraction")
    replay.add_argument("recording", type=Path, help="JSON Lines file of recorded messages")
    replay.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing to the store",
    )

    remote = subparsers.add_parser("remote", help="Drive a remote extraction sandbox session")
    remote.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing to the store",
    )

    subparsers.add_parser("quality", help="Validate stored records and score their quality")
    subparsers.add_parser("repair", help="Report what the repairer would fix in stored records")

    return parser.parse_args(list(argv))


def _validate_args(args: argparse.Namespace) -> None:
    if args.command == "replay" and not args.recording.is_file():
        raise ValueError(f"Recording not found: {args.recording}")


def _log_ingest(result: IngestResult) -> None:
    if result.counts is None:
        log.warning("Ingestion did not complete")
        return
    if result.preview is not None:
        for kind, counts in result.preview.counts.items():
            log.info(
                "%s: %d new, %d updated, %d unchanged",
                kind,
                counts["new"],
                counts["updated"],
                counts["unchanged"],
            )
    if result.outcome is None:
        log.info("Dry run: nothing written")
    elif result.outcome.cancelled:
        log.warning("Sync cancelled")
    elif not result.outcome.ok:
        raise RuntimeError(f"Sync failed: {result.outcome.error}")


def _log_quality(report: QualityReport) -> None:
    for kind, summary in report.validation.kinds.items():
        log.info(
            "%s: %d record(s), %d valid, %d error(s), %d warning(s), %d auto-fixable",
            kind,
            summary.total,
            summary.valid,
            summary.errors,
            summary.warnings,
            summary.auto_fixable,
        )
    score = report.score
    log.info(
        "Quality score %d (completeness %d, accuracy %d, consistency %d, timeliness %d)",
        score.overall,
        score.completeness,
        score.accuracy,
        score.consistency,
        score.timeliness,
    )


def _log_repair(summary: RepairSummary) -> None:
    for name, batch in (
        ("offers", summary.offers),
        ("cruises", summary.cruises),
        ("booked_cruises", summary.booked_cruises),
    ):
        log.info(
            "%s: %d fully repaired, %d partially repaired, %d unrepaired, %d action(s)",
            name,
            batch.fully_repaired_count,
            batch.partially_repaired_count,
            batch.unrepaired_count,
            batch.total_actions,
        )
    log.info("Repair success rate: %.1f%%", summary.success_rate)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate_args(parsed_args)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        if parsed_args.command == "replay":
            _log_ingest(
                asyncio.run(replay_session(parsed_args.recording, dry_run=parsed_args.dry_run))
            )
        elif parsed_args.command == "remote":
            _log_ingest(asyncio.run(run_remote_session(dry_run=parsed_args.dry_run)))
        elif parsed_args.command == "quality":
            _log_quality(asyncio.run(quality_report()))
        elif parsed_args.command == "repair":
            _log_repair(asyncio.run(repair_report()))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
