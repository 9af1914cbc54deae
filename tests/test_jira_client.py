import pytest
import requests
from jira import JIRAError

from jira_score.core.jira_client import (
    REDACTED,
    JiraAPI,
    JiraListingError,
    build_comment_document,
    redact_headers,
)
from jira_score.core.models import FailureKind
from jira_score.report import RunReport


def _api(settings, responses, fake_session, **kwargs):
    session = fake_session(responses, headers=kwargs.pop("headers", None))
    report = RunReport(dry_run=settings.dry_run)
    api = JiraAPI(settings, report, session=session, sleep=kwargs.pop("sleep", lambda _s: None))
    return api, session, report


def _page(keys, token=None, **extra):
    payload = {"issues": [{"id": str(i), "key": k} for i, k in enumerate(keys)], **extra}
    if token:
        payload["nextPageToken"] = token
    return payload


# ------------------ Listing ------------------
def test_list_issue_keys_uses_token_pagination(jira_settings, fake_session, fake_response):
    responses = [
        fake_response(200, _page(["ABC-1", "ABC-2"], token="t1")),
        fake_response(200, _page(["ABC-3"])),
    ]
    api, session, _ = _api(jira_settings, responses, fake_session)

    keys = api.list_issue_keys(2)

    assert keys == ["ABC-1", "ABC-2", "ABC-3"]
    first, second = session.calls
    assert first["method"] == "POST"
    assert first["url"] == "https://example.atlassian.net/rest/api/3/search/jql"
    assert first["json"] == {"jql": "filter=10001", "maxResults": 2, "fields": ["summary"]}
    assert second["json"]["nextPageToken"] == "t1"


def test_list_issue_keys_stops_when_page_repeats_keys(jira_settings, fake_session, fake_response):
    responses = [
        fake_response(200, _page(["ABC-1", "ABC-2"], token="t1")),
        fake_response(200, _page(["abc-1", "ABC-2"], token="t2")),
    ]
    api, session, report = _api(jira_settings, responses, fake_session)

    keys = api.list_issue_keys(50)

    assert keys == ["ABC-1", "ABC-2"]
    assert len(session.calls) == 2
    assert any("no new keys" in line for line in report.lines)
    assert any("Duplicate issue key abc-1" in line for line in report.lines)


def test_list_issue_keys_stops_on_empty_page(jira_settings, fake_session, fake_response):
    api, session, _ = _api(jira_settings, [fake_response(200, {"issues": [], "nextPageToken": "t"})], fake_session)
    assert api.list_issue_keys(10) == []
    assert len(session.calls) == 1


def test_list_issue_keys_dedupes_and_keeps_first_seen_order(jira_settings, fake_session, fake_response):
    responses = [
        fake_response(200, _page(["ABC-2", "ABC-1", "abc-2"], token="t1")),
        fake_response(200, _page(["ABC-3", "Abc-1"], isLast=True, token="t2")),
    ]
    api, session, _ = _api(jira_settings, responses, fake_session)
    assert api.list_issue_keys(3) == ["ABC-2", "ABC-1", "ABC-3"]
    assert len(session.calls) == 2


def test_list_issue_keys_defaults_page_size(jira_settings, fake_session, fake_response):
    api, session, _ = _api(jira_settings, [fake_response(200, _page(["ABC-1"]))], fake_session)
    api.list_issue_keys(0)
    assert session.calls[0]["json"]["maxResults"] == 50


def test_list_issue_keys_failure_is_fatal(jira_settings, fake_session, fake_response):
    api, _, _ = _api(jira_settings, [fake_response(500, text="boom")], fake_session)
    with pytest.raises(JiraListingError, match="500 boom"):
        api.list_issue_keys(50)


def test_list_issue_keys_jira_error_is_fatal(jira_settings, fake_session):
    api, _, _ = _api(jira_settings, [JIRAError(status_code=401, text="Unauthorized")], fake_session)
    with pytest.raises(JiraListingError, match="401"):
        api.list_issue_keys(50)


def test_request_delay_applied_before_each_call(jira_settings, fake_session, fake_response):
    jira_settings.request_delay_ms = 250
    sleeps = []
    responses = [fake_response(200, _page(["ABC-1"], token="t")), fake_response(200, _page([]))]
    api, _, _ = _api(jira_settings, responses, fake_session, sleep=sleeps.append)
    api.list_issue_keys(1)
    assert sleeps == [0.25, 0.25]


# ------------------ Field loads ------------------
def test_load_fields_filtered(jira_settings, fake_session, fake_response):
    payload = {"key": "ABC-1", "fields": {"summary": "S", "customfield_200": 5}}
    api, session, _ = _api(jira_settings, [fake_response(200, payload)], fake_session)

    result = api.load_fields("ABC-1", ["assignee", "customfield_200", "", "SUMMARY", "customfield_200"])

    assert result.ok
    assert set(result.value) == {"summary", "customfield_200"}
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"].endswith("/rest/api/3/issue/ABC-1")
    assert call["params"] == {"fields": "summary,assignee,customfield_200", "fieldsByKeys": "true"}


def test_load_fields_falls_back_to_full_issue(jira_settings, fake_session, fake_response):
    responses = [
        fake_response(400, text="bad fields"),
        fake_response(200, {"fields": {"summary": "S"}}),
    ]
    api, session, report = _api(jira_settings, responses, fake_session)

    result = api.load_fields("ABC-1", ["customfield_200"])

    assert result.ok
    assert session.calls[1]["params"] is None
    assert any("fields-filtered" in line and "400" in line for line in report.lines)


def test_load_fields_missing_fields_object_falls_back(jira_settings, fake_session, fake_response):
    responses = [
        fake_response(200, {"key": "ABC-1"}),
        fake_response(200, {"fields": {}}),
    ]
    api, _, report = _api(jira_settings, responses, fake_session)
    result = api.load_fields("ABC-1", [])
    assert result.ok
    assert len(result.value) == 0
    assert any("response missing fields" in line for line in report.lines)


def test_load_fields_unavailable_when_both_fail(jira_settings, fake_session, fake_response):
    responses = [
        requests.ConnectionError("reset"),
        fake_response(404, text="Issue does not exist"),
    ]
    api, _, _ = _api(jira_settings, responses, fake_session)
    result = api.load_fields("ABC-404", ["customfield_200"])
    assert not result.ok
    assert result.kind is FailureKind.UNAVAILABLE
    assert result.value is None
    assert result.status == 404


def test_load_field_display_names(jira_settings, fake_session, fake_response):
    payload = {"fields": {"summary": "S"}, "names": {"customfield_100": "Request Type", "weird": 5}}
    api, session, _ = _api(jira_settings, [fake_response(200, payload)], fake_session)
    assert api.load_field_display_names("ABC-1") == {"customfield_100": "Request Type"}
    assert session.calls[0]["params"] == {"expand": "names", "fields": "summary"}


def test_load_field_display_names_failure_returns_empty(jira_settings, fake_session, fake_response):
    api, _, _ = _api(jira_settings, [fake_response(403, text="forbidden")], fake_session)
    assert api.load_field_display_names("ABC-1") == {}


# ------------------ Writes ------------------
def test_write_score(jira_settings, fake_session, fake_response):
    api, session, _ = _api(jira_settings, [fake_response(204, text="")], fake_session)
    assert api.write_score("ABC-1", 42).ok
    call = session.calls[0]
    assert call["method"] == "PUT"
    assert call["json"] == {"fields": {"customfield_200": 42}}


def test_write_score_failure_returns_result(jira_settings, fake_session, fake_response):
    api, _, report = _api(jira_settings, [fake_response(400, text="Field cannot be set")], fake_session)
    result = api.write_score("ABC-1", 42)
    assert not result.ok
    assert result.status == 400
    assert "[ABC-1] Failed to update PriorityScore: 400 Field cannot be set" in report.lines


def test_add_comment_with_mention(jira_settings, fake_session, fake_response):
    api, session, _ = _api(jira_settings, [fake_response(201, {"id": "1"})], fake_session)
    assert api.add_comment("ABC-1", "[assignee] updated priority from 1 to 3", "acc-1").ok
    call = session.calls[0]
    assert call["url"].endswith("/issue/ABC-1/comment")
    paragraph = call["json"]["body"]["content"][0]["content"]
    assert paragraph == [
        {"type": "mention", "attrs": {"id": "acc-1"}},
        {"type": "text", "text": " updated priority from 1 to 3"},
    ]


def test_add_comment_failure(jira_settings, fake_session, fake_response):
    api, _, _ = _api(jira_settings, [fake_response(500, text="oops")], fake_session)
    result = api.add_comment("ABC-1", "text", None)
    assert not result.ok
    assert result.kind is FailureKind.HTTP_ERROR


def test_build_comment_document_strips_placeholder_without_account():
    doc = build_comment_document("[assignee]   updated priority", None)
    assert doc["type"] == "doc" and doc["version"] == 1
    assert doc["content"][0]["content"] == [{"type": "text", "text": "updated priority"}]


# ------------------ Verbose logging ------------------
def test_redact_headers():
    out = redact_headers({"Authorization": "Basic abc", "Accept": "application/json"})
    assert out == {"Authorization": REDACTED, "Accept": "application/json"}


def test_verbose_logging_redacts_authorization(jira_settings, fake_session, fake_response):
    jira_settings.log_headers = True
    jira_settings.log_request_bodies = True
    jira_settings.log_response_bodies = True
    api, _, report = _api(
        jira_settings,
        [fake_response(200, _page([]))],
        fake_session,
        headers={"Authorization": "Basic c2VjcmV0", "Accept": "application/json"},
    )
    api.list_issue_keys(5)
    text = report.log_text
    assert "c2VjcmV0" not in text
    assert REDACTED in text
    assert "Jira Request Body" in text
    assert "Jira Response: 200" in text
