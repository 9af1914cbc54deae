"""Run log capture and plain-text report rendering."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime

import pandas as pd
import pytz

from jira_score.core.config import TIMEZONE
from jira_score.core.fields import format_number
from jira_score.core.models import IssueOutcome, RunStats

OUTCOME_COLUMNS = ("key", "request_type", "current_score", "computed_score", "action")


class RunReport:
    """Explicit log sink shared by the processor and the Jira client.

    Every line is forwarded to the ``jira_score`` logger and kept in memory so
    the whole run can be emailed once it finishes.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        timezone: str = TIMEZONE,
        dry_run: bool = True,
        started_at: datetime | None = None,
    ):
        self.logger = logger or logging.getLogger("jira_score")
        self._tz = pytz.timezone(timezone)
        self.dry_run = dry_run
        self.started_at = started_at or datetime.now(pytz.UTC)
        self.lines: list[str] = []
        self.outcomes: list[IssueOutcome] = []

    def _emit(self, level: int, message: str, args: tuple, issue_key: str | None) -> None:
        text = message % args if args else message
        if issue_key:
            text = f"[{issue_key}] {text}"
        self.lines.append(text)
        self.logger.log(level, "%s", text)

    def info(self, message: str, *args, issue_key: str | None = None) -> None:
        self._emit(logging.INFO, message, args, issue_key)

    def warning(self, message: str, *args, issue_key: str | None = None) -> None:
        self._emit(logging.WARNING, message, args, issue_key)

    def error(self, message: str, *args, issue_key: str | None = None) -> None:
        self._emit(logging.ERROR, message, args, issue_key)

    def record_outcome(self, outcome: IssueOutcome) -> None:
        self.outcomes.append(outcome)

    def outcomes_frame(self) -> pd.DataFrame:
        if not self.outcomes:
            return pd.DataFrame(columns=list(OUTCOME_COLUMNS))
        df = pd.DataFrame([asdict(o) for o in self.outcomes], columns=list(OUTCOME_COLUMNS))
        for col in ("current_score", "computed_score"):
            df[col] = df[col].apply(lambda v: format_number(v) if v is not None and not pd.isna(v) else "null")
        df["request_type"] = df["request_type"].fillna("(null)")
        return df

    def action_counts(self) -> dict[str, int]:
        df = self.outcomes_frame()
        if df.empty:
            return {}
        return {str(k): int(v) for k, v in df["action"].value_counts().sort_index().items()}

    @property
    def log_text(self) -> str:
        return "\n".join(self.lines)

    def subject_suffix(self) -> str:
        return " (dry run)" if self.dry_run else ""

    def render(self, stats: RunStats) -> str:
        started_local = self.started_at.astimezone(self._tz)
        header = [
            f"Run started: {started_local.strftime('%Y-%m-%d %H:%M:%S %Z')}",
            f"Mode: {'dry run' if self.dry_run else 'live'}",
            f"Processed: {stats.processed}  Updated: {stats.updated}  Commented: {stats.commented}",
        ]
        counts = self.action_counts()
        if counts:
            header.append("Actions: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
        sections = ["\n".join(header)]
        df = self.outcomes_frame()
        if not df.empty:
            sections.append(df.to_string(index=False))
        if self.lines:
            sections.append(self.log_text)
        return "\n\n".join(sections) + "\n"
