"""IssueProcessor: orchestrates listing, field resolution, scoring, and score write-back."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from jira_score.report import RunReport

from .config import (
    ASSIGNEE_PLACEHOLDER,
    SCORE_TOLERANCE,
    SUPPRESS_ON_ALL_INPUTS_NULL,
    JiraSettings,
)
from .fields import FieldSet, format_number, get_assignee, get_number, get_string, is_match
from .jira_client import JiraAPI
from .models import (
    EngineeringInputs,
    IssueOutcome,
    IssueRef,
    ProductInputs,
    RequestType,
    RunStats,
    ScoreResult,
)
from .scoring import (
    all_inputs_null,
    engineering_missing_inputs,
    engineering_score,
    product_missing_inputs,
    product_score,
)

ScoreInputs = ProductInputs | EngineeringInputs


def build_comment_text(current: float | None, computed: int, inputs: ScoreInputs) -> str:
    details = ", ".join(f"{label}={format_number(value)}" for label, value in inputs.labelled())
    return f"{ASSIGNEE_PLACEHOLDER} updated priority from {format_number(current)} to {computed} ({details})"


def render_comment(comment_text: str, display_name: str | None) -> str:
    """Human-readable version of the comment for the run log."""
    if display_name and display_name.strip():
        return comment_text.replace(ASSIGNEE_PLACEHOLDER, display_name)
    return comment_text.replace(ASSIGNEE_PLACEHOLDER, "").lstrip()


class IssueProcessor:
    def __init__(self, api: JiraAPI, settings: JiraSettings, report: RunReport | None = None):
        self.api = api
        self.settings = settings
        self.report = report or api.report
        self.stats = RunStats()
        self._seen: set[str] = set()

    # ------------------ Run loop ------------------
    def process_filter(self) -> RunStats:
        """Score every issue of the configured filter, one at a time.

        A listing failure propagates and ends the run; per-issue failures are
        logged and the loop moves on.
        """
        self.stats.reset()
        self._seen.clear()
        filter_id = self.settings.filter_id
        self.report.info("Using FilterId: %s", filter_id)
        if self.settings.dry_run:
            self.report.info("DryRun enabled: no changes will be written to Jira.")

        field_ids = self.settings.issue_field_ids()
        keys = self.api.list_issue_keys(self.settings.page_size)
        self.report.info("Filter %s contains %d issues.", filter_id, len(keys))

        for key in keys:
            if key.lower() in self._seen:
                self.report.info("Issue %s already processed in this run; skipping.", key)
                continue
            self._seen.add(key.lower())
            try:
                self.process_issue(IssueRef(key), field_ids)
            except (ArithmeticError, TypeError, ValueError) as exc:
                # Malformed issue data ends this issue only
                self.report.error("Skipped: failed to process issue: %s", exc, issue_key=key)
                self._record(key, None, None, None, "failed")

        self.report.info(
            "Run complete: processed=%d updated=%d commented=%d",
            self.stats.processed,
            self.stats.updated,
            self.stats.commented,
        )
        return replace(self.stats)

    def process_issue(self, issue: IssueRef, field_ids: Sequence[str] | None = None) -> None:
        key = issue.key
        self.stats.processed += 1
        self.report.info("")
        self.report.info("Processing issue %s...", key)

        loaded = self.api.load_fields(key, field_ids if field_ids is not None else self.settings.issue_field_ids())
        if not loaded.ok:
            self.report.warning("Skipped: could not load fields (%s).", loaded.kind.value, issue_key=key)
            self._record(key, None, None, None, "skipped")
            return
        fields = loaded.value

        request_type_value = self.resolve_request_type(key, fields)
        request_type = self.classify(request_type_value)
        if request_type is RequestType.UNMATCHED:
            display = request_type_value if request_type_value and request_type_value.strip() else "(null)"
            self.report.info("Skipped: Request Type '%s' not matched.", display, issue_key=key)
            self._record(key, request_type_value, None, None, "unmatched")
            return

        inputs, score = self.compute_score(key, request_type, fields)
        self.decide_update(key, request_type_value, fields, inputs, score)

    # ------------------ Request type ------------------
    def classify(self, request_type_value: str | None) -> RequestType:
        s = self.settings
        if is_match(request_type_value, s.request_type_product_value):
            return RequestType.PRODUCT
        if is_match(request_type_value, s.request_type_engineering_enabler_value) or is_match(
            request_type_value, s.request_type_ktlo_value
        ):
            return RequestType.ENGINEERING_OR_KTLO
        return RequestType.UNMATCHED

    def resolve_request_type(self, issue_key: str, fields: FieldSet) -> str | None:
        """Read the request type, falling back to a display-name lookup of the field id.

        The machine id of the request-type field can differ between Jira sites
        and projects while its display name stays the same.
        """
        configured_id = self.settings.request_type_field_id
        value = get_string(fields, configured_id)
        if value and value.strip():
            return value

        field_name = self.settings.request_type_field_name
        if not field_name or not field_name.strip():
            self.report.warning("Request Type field not found. Check request_type_field_id.", issue_key=issue_key)
            return None

        names = self.api.load_field_display_names(issue_key)
        resolved_id = next((fid for fid, name in names.items() if is_match(name, field_name)), None)
        if resolved_id is None:
            candidates = [f"{fid}='{name}'" for fid, name in names.items() if "request" in name.lower()]
            if candidates:
                self.report.warning(
                    "Request Type field name '%s' not found. Candidates: %s",
                    field_name,
                    ", ".join(candidates),
                    issue_key=issue_key,
                )
            else:
                self.report.warning(
                    "Request Type field name '%s' not found. No 'request' fields in names map.",
                    field_name,
                    issue_key=issue_key,
                )
            present = fields.sorted_ids()
            if present:
                self.report.info("Fields present in issue: %s", ", ".join(present), issue_key=issue_key)
            return None

        if resolved_id.lower() != (configured_id or "").strip().lower():
            self.report.info("Resolved Request Type field id: %s", resolved_id, issue_key=issue_key)

        refreshed = self.api.load_fields(issue_key, [resolved_id])
        if not refreshed.ok:
            self.report.warning(
                "Could not re-fetch Request Type field %s (%s).", resolved_id, refreshed.kind.value, issue_key=issue_key
            )
            return None
        return get_string(refreshed.value, resolved_id)

    # ------------------ Scoring ------------------
    def read_product_inputs(self, fields: FieldSet) -> ProductInputs:
        s = self.settings
        return ProductInputs(
            reach=get_number(fields, s.reach_field_id),
            impact=get_number(fields, s.impact_field_id),
            confidence=get_number(fields, s.confidence_field_id),
            effort=get_number(fields, s.effort_field_id),
        )

    def read_engineering_inputs(self, fields: FieldSet) -> EngineeringInputs:
        s = self.settings
        return EngineeringInputs(
            business_weight=get_number(fields, s.business_weight_field_id),
            time_criticality=get_number(fields, s.time_criticality_field_id),
            risk_reduction=get_number(fields, s.risk_reduction_field_id),
            opportunity_enablement=get_number(fields, s.opportunity_enablement_field_id),
        )

    def compute_score(
        self, issue_key: str, request_type: RequestType, fields: FieldSet
    ) -> tuple[ScoreInputs, ScoreResult]:
        current = get_number(fields, self.settings.priority_score_field_id)
        if request_type is RequestType.PRODUCT:
            inputs: ScoreInputs = self.read_product_inputs(fields)
            missing = product_missing_inputs(inputs)
            computed = product_score(inputs)
        elif request_type is RequestType.ENGINEERING_OR_KTLO:
            inputs = self.read_engineering_inputs(fields)
            missing = engineering_missing_inputs(inputs)
            computed = engineering_score(inputs)
        else:
            raise ValueError(f"No scoring formula for request type {request_type!r}")

        details = " ".join(f"{label.replace(' ', '')}={format_number(value)}" for label, value in inputs.labelled())
        self.report.info(
            "%s | PriorityScore=%s %s", request_type.value, format_number(current), details, issue_key=issue_key
        )
        self.report.info("%s TempPriorityScore=%d", request_type.value, computed, issue_key=issue_key)

        nulls = all_inputs_null(inputs)
        return inputs, ScoreResult(
            current_score=current,
            computed_score=computed,
            missing_inputs=missing,
            all_inputs_null=nulls,
            should_skip_comment=self._suppress_comment(current, computed, missing, nulls),
        )

    def _suppress_comment(self, current: float | None, computed: int, missing: bool, nulls: bool) -> bool:
        if current is not None or computed != 0:
            return False
        if self.settings.comment_suppression == SUPPRESS_ON_ALL_INPUTS_NULL:
            return nulls
        return missing

    # ------------------ Update decision ------------------
    def decide_update(
        self,
        issue_key: str,
        request_type_value: str | None,
        fields: FieldSet,
        inputs: ScoreInputs,
        score: ScoreResult,
    ) -> str:
        """Write the new score (and comment) when it differs; returns the recorded action."""
        current = score.current_score
        computed = score.computed_score
        unchanged = abs((current or 0.0) - computed) < SCORE_TOLERANCE
        if current is None and self.settings.write_when_score_missing:
            unchanged = False
        if unchanged:
            self.report.info("PriorityScore unchanged.", issue_key=issue_key)
            return self._record(issue_key, request_type_value, current, computed, "unchanged")

        assignee = get_assignee(fields)
        comment_text = build_comment_text(current, computed, inputs)
        readable = render_comment(comment_text, assignee.display_name)

        if self.settings.dry_run:
            self.report.info("DryRun - would update PriorityScore to %s.", format_number(computed), issue_key=issue_key)
            if score.should_skip_comment:
                self.report.info(
                    "DryRun - skipping comment because PriorityScore is null and new value is 0.", issue_key=issue_key
                )
            else:
                self.report.info("DryRun - would add comment:\n%s", readable, issue_key=issue_key)
            return self._record(issue_key, request_type_value, current, computed, "dry-run")

        written = self.api.write_score(issue_key, computed)
        if not written.ok:
            return self._record(issue_key, request_type_value, current, computed, "update-failed")
        self.stats.updated += 1
        self.report.info("PriorityScore updated to %s.", format_number(computed), issue_key=issue_key)

        if score.should_skip_comment:
            self.report.info(
                "Skipped Jira comment because PriorityScore is null and new value is 0.", issue_key=issue_key
            )
            return self._record(issue_key, request_type_value, current, computed, "updated")

        commented = self.api.add_comment(issue_key, comment_text, assignee.account_id)
        if commented.ok:
            self.stats.commented += 1
            self.report.info("Comment added:\n%s", readable, issue_key=issue_key)
        return self._record(issue_key, request_type_value, current, computed, "updated")

    def _record(
        self,
        key: str,
        request_type_value: str | None,
        current: float | None,
        computed: int | None,
        action: str,
    ) -> str:
        self.report.record_outcome(IssueOutcome(key, request_type_value, current, computed, action))
        return action
