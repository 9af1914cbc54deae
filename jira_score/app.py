"""Application entry point: load settings, run the scoring pass, email the report."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import replace

from jira_score.core.config import AppSettings, ConfigError, load_settings
from jira_score.core.jira_client import JiraAPI
from jira_score.core.models import RunStats
from jira_score.core.processor import IssueProcessor
from jira_score.notify.report_email import EmailNotifier
from jira_score.report import RunReport

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute Jira priority scores for a saved filter")
    parser.add_argument("--config", help="Path to settings.yaml (searched upward from cwd when omitted)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", dest="dry_run", action="store_true", default=None, help="Log intended changes only")
    mode.add_argument("--live", dest="dry_run", action="store_false", help="Write scores and comments to Jira")
    parser.add_argument("--log-level", help="Override the configured log level (DEBUG, INFO, ...)")
    parser.add_argument("--no-email", action="store_true", help="Do not send the report email")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT, datefmt=LOG_DATEFMT)


def run(settings: AppSettings, *, api: JiraAPI | None = None, send_email: bool = True) -> tuple[RunStats, RunReport, bool]:
    """Run one scoring pass; returns the stats, the report, and whether it finished cleanly."""
    report = RunReport(timezone=settings.timezone, dry_run=settings.jira.dry_run)
    stats = RunStats()
    ok = True
    processor: IssueProcessor | None = None
    try:
        api = api or JiraAPI(settings.jira, report)
        api.report = report
        processor = IssueProcessor(api, settings.jira, report)
        stats = processor.process_filter()
    except Exception as exc:  # run boundary: one error line, then still report
        report.error("Error: %s", exc)
        if processor is not None:
            stats = replace(processor.stats)
        ok = False

    if send_email:
        notifier = EmailNotifier(settings.email)
        notifier.send(settings.email.subject + report.subject_suffix(), report.render(stats))
    return stats, report, ok


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or "INFO")
    try:
        settings = load_settings(args.config)
        if args.dry_run is not None:
            settings.jira.dry_run = args.dry_run
        settings.validate()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if not args.log_level and settings.log_level:
        logging.getLogger().setLevel(getattr(logging, settings.log_level, logging.INFO))
    logger.info("Loaded settings from %s", settings.source_path)

    _, _, ok = run(settings, send_email=not args.no_email)
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
