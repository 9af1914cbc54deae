"""Jira API client wrapper (REST v3 enhanced search, field loads, score writes, ADF comments)."""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import quote

import requests
from jira import JIRA, JIRAError

from jira_score.report import RunReport

from .config import ASSIGNEE_PLACEHOLDER, DEFAULT_PAGE_SIZE, IDENTIFIER_FIELD, JiraSettings
from .fields import FieldSet
from .models import FailureKind, Result

BODY_SNIPPET_LIMIT = 1000
REDACTED = "<redacted>"


class JiraListingError(RuntimeError):
    """Listing the filter's issue keys failed; the run cannot continue."""


def redact_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in (headers or {}).items():
        out[name] = REDACTED if str(name).lower() == "authorization" else value
    return out


def _snippet(text: str | None, limit: int = BODY_SNIPPET_LIMIT) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


def build_comment_document(comment_text: str, assignee_account_id: str | None) -> dict[str, Any]:
    """Render comment text as an ADF doc, turning ``[assignee]`` into a mention node."""
    nodes: list[dict[str, Any]] = []
    if assignee_account_id:
        for idx, part in enumerate(comment_text.split(ASSIGNEE_PLACEHOLDER)):
            if idx > 0:
                nodes.append({"type": "mention", "attrs": {"id": assignee_account_id}})
            if part:
                nodes.append({"type": "text", "text": part})
    else:
        cleaned = comment_text.replace(ASSIGNEE_PLACEHOLDER, "").lstrip()
        if cleaned:
            nodes.append({"type": "text", "text": cleaned})
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": nodes}],
    }


class JiraAPI:
    def __init__(
        self,
        settings: JiraSettings,
        report: RunReport | None = None,
        *,
        session: Any | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.server = settings.base_url.rstrip("/")
        if report is None:
            report = RunReport(dry_run=settings.dry_run)
        self.report = report
        self._sleep = sleep
        self.client: JIRA | None = None
        if session is None:
            # Library retries are disabled: the request delay is the only backpressure
            self.client = JIRA(
                basic_auth=(settings.email, settings.api_token),
                options={"server": self.server, "rest_api_version": settings.api_version},
                get_server_info=False,
                max_retries=0,
            )
            session = getattr(self.client, "_session", None)
            if session is None:
                raise RuntimeError("JIRA session unavailable")
        self._session = session

    # ------------------ Transport ------------------
    def _url(self, path: str) -> str:
        return f"{self.settings.api_root}{path}"

    @staticmethod
    def _issue_path(issue_key: str) -> str:
        return f"/issue/{quote(issue_key, safe='')}"

    def _pause(self) -> None:
        if self.settings.request_delay_ms > 0:
            self._sleep(self.settings.request_delay_ms / 1000.0)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Result[Any]:
        self._pause()
        url = self._url(path)
        self.report.info("Jira Request: %s %s", method, url)
        if self.settings.log_headers:
            merged = dict(getattr(self._session, "headers", {}) or {})
            self.report.info("Jira Request Headers: %s", redact_headers(merged))
        if self.settings.log_request_bodies and json_body is not None:
            self.report.info("Jira Request Body: %s", json.dumps(json_body))
        try:
            resp = self._session.request(method, url, params=params, json=json_body)
        except JIRAError as exc:
            status = getattr(exc, "status_code", None)
            text = getattr(exc, "text", None) or str(exc)
            return Result.failure(FailureKind.HTTP_ERROR, _snippet(text), status)
        except requests.RequestException as exc:
            return Result.failure(FailureKind.TRANSPORT_ERROR, str(exc))

        if self.settings.log_headers:
            self.report.info("Jira Response Headers: %s", redact_headers(getattr(resp, "headers", None)))
        if self.settings.log_response_bodies:
            self.report.info("Jira Response: %s %s", resp.status_code, _snippet(resp.text))
        if resp.status_code >= 400:
            return Result.failure(FailureKind.HTTP_ERROR, _snippet(resp.text), resp.status_code)
        return Result.success(resp)

    @staticmethod
    def _json(resp) -> Any:
        if not getattr(resp, "text", None):
            return {}
        return resp.json()

    # ------------------ Listing ------------------
    def list_issue_keys(self, page_size: int | None = None) -> list[str]:
        """Collect the filter's issue keys using ``nextPageToken`` pagination.

        Keys are deduplicated case-insensitively across pages and returned in
        first-seen order. Pagination ends on an empty page, a page without any
        new keys, or when Jira stops returning a continuation token.
        """
        filter_id = self.settings.filter_id
        size = page_size if page_size and page_size > 0 else DEFAULT_PAGE_SIZE
        base_body = {"jql": f"filter={filter_id}", "maxResults": size, "fields": [IDENTIFIER_FIELD]}
        seen: set[str] = set()
        keys: list[str] = []
        token = None
        page_no = 0
        while True:
            page_no += 1
            body = dict(base_body)
            if token:
                body["nextPageToken"] = token
            result = self._request("POST", "/search/jql", json_body=body)
            if not result.ok:
                raise JiraListingError(f"Failed to load filter {filter_id}: {result.status or result.kind.value} {result.detail}")
            try:
                data = self._json(result.value)
            except ValueError as exc:
                raise JiraListingError(f"Failed to parse filter {filter_id} page {page_no}: {exc}") from exc
            if not isinstance(data, dict):
                raise JiraListingError(f"Unexpected search payload for filter {filter_id}: {type(data)!r}")

            issues = data.get("issues") or []
            if not issues:
                self.report.info("Filter %s page %d returned no issues.", filter_id, page_no)
                break
            new_keys = 0
            for issue in issues:
                key = issue.get("key") if isinstance(issue, dict) else None
                if not isinstance(key, str) or not key.strip():
                    continue
                key = key.strip()
                if key.lower() in seen:
                    self.report.info("Duplicate issue key %s on page %d; skipping.", key, page_no)
                    continue
                seen.add(key.lower())
                keys.append(key)
                new_keys += 1
            self.report.info("Filter %s page %d: %d issues, %d new.", filter_id, page_no, len(issues), new_keys)
            if new_keys == 0:
                self.report.warning("Filter %s page %d contained no new keys; stopping pagination.", filter_id, page_no)
                break
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        return keys

    # ------------------ Issue fields ------------------
    def load_fields(self, issue_key: str, field_ids: Iterable[str]) -> Result[FieldSet]:
        """Fetch only ``field_ids``; fall back to the full issue; ``unavailable`` if both fail."""
        requested: list[str] = [IDENTIFIER_FIELD]
        seen = {IDENTIFIER_FIELD}
        for field_id in field_ids:
            cleaned = (field_id or "").strip()
            if cleaned and cleaned.lower() not in seen:
                seen.add(cleaned.lower())
                requested.append(cleaned)

        params = {"fields": ",".join(requested), "fieldsByKeys": "true"}
        filtered = self._try_load_fields(issue_key, params, "fields-filtered")
        if filtered.ok:
            return filtered
        fallback = self._try_load_fields(issue_key, None, "fallback")
        if fallback.ok:
            return fallback
        return Result.failure(
            FailureKind.UNAVAILABLE,
            f"fields-filtered: {filtered.detail}; fallback: {fallback.detail}",
            fallback.status,
        )

    def _try_load_fields(self, issue_key: str, params: dict[str, Any] | None, label: str) -> Result[FieldSet]:
        result = self._request("GET", self._issue_path(issue_key), params=params)
        if not result.ok:
            self.report.warning(
                "Failed to load issue %s (%s): %s %s",
                issue_key,
                label,
                result.status or result.kind.value,
                result.detail,
            )
            return result
        try:
            data = self._json(result.value)
        except ValueError:
            data = None
        raw_fields = data.get("fields") if isinstance(data, dict) else None
        if not isinstance(raw_fields, dict):
            body = _snippet(getattr(result.value, "text", ""))
            self.report.warning("Issue %s response missing fields (%s). Body (truncated): %s", issue_key, label, body)
            return Result.failure(FailureKind.MISSING_FIELDS, "response missing fields", result.value.status_code)
        return Result.success(FieldSet.from_raw(raw_fields))

    def load_field_display_names(self, issue_key: str) -> dict[str, str]:
        params = {"expand": "names", "fields": IDENTIFIER_FIELD}
        result = self._request("GET", self._issue_path(issue_key), params=params)
        if not result.ok:
            self.report.warning(
                "Failed to load field names for %s: %s %s", issue_key, result.status or result.kind.value, result.detail
            )
            return {}
        try:
            data = self._json(result.value)
        except ValueError as exc:
            self.report.warning("Failed to parse field names for %s: %s", issue_key, exc)
            return {}
        names = data.get("names") if isinstance(data, dict) else None
        if not isinstance(names, dict):
            return {}
        return {str(k): v for k, v in names.items() if isinstance(v, str)}

    # ------------------ Writes ------------------
    def write_score(self, issue_key: str, new_score: int | float) -> Result[None]:
        body = {"fields": {self.settings.priority_score_field_id: new_score}}
        result = self._request("PUT", self._issue_path(issue_key), json_body=body)
        if not result.ok:
            self.report.error(
                "Failed to update PriorityScore: %s %s",
                result.status or result.kind.value,
                result.detail,
                issue_key=issue_key,
            )
            return Result.failure(result.kind, result.detail, result.status)
        return Result.success()

    def add_comment(self, issue_key: str, comment_text: str, assignee_account_id: str | None) -> Result[None]:
        body = {"body": build_comment_document(comment_text, assignee_account_id)}
        result = self._request("POST", f"{self._issue_path(issue_key)}/comment", json_body=body)
        if not result.ok:
            self.report.error(
                "Failed to add comment: %s %s",
                result.status or result.kind.value,
                result.detail,
                issue_key=issue_key,
            )
            return Result.failure(result.kind, result.detail, result.status)
        return Result.success()
