"""Run report: captured log lines, per-issue outcomes, and text rendering."""

from jira_score.report.run_report import OUTCOME_COLUMNS, RunReport

__all__ = [
    "OUTCOME_COLUMNS",
    "RunReport",
]
