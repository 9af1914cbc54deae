"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import jira_score` works. Shared fakes for the HTTP session
live here as fixtures.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jira_score.core.config import JiraSettings  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None, headers=None):
        self.status_code = status_code
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text
        self.headers = headers or {}

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Returns queued responses (or raises queued exceptions) and records every call."""

    def __init__(self, responses=(), headers=None):
        self.responses = list(responses)
        self.calls = []
        self.headers = headers or {}

    def request(self, method, url, params=None, json=None, **kwargs):
        self.calls.append({"method": method, "url": url, "params": params, "json": json})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": "POST", "url": url, "json": json, "headers": headers})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def jira_settings():
    return JiraSettings(
        base_url="https://example.atlassian.net/",
        email="bot@example.com",
        api_token="secret-token",
        filter_id=10001,
        dry_run=False,
        request_type_field_id="customfield_999",
        priority_score_field_id="customfield_200",
        reach_field_id="customfield_201",
        impact_field_id="customfield_202",
        confidence_field_id="customfield_203",
        effort_field_id="customfield_204",
        business_weight_field_id="customfield_205",
        time_criticality_field_id="customfield_206",
        risk_reduction_field_id="customfield_207",
        opportunity_enablement_field_id="customfield_208",
    )
