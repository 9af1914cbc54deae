"""Central configuration, constants, and settings loading for the scoring run."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

# =============================================================================
# Jira Connection Defaults
# =============================================================================
DEFAULT_API_VERSION = "3"
DEFAULT_PAGE_SIZE = 50
TIMEZONE = "America/Santiago"

# Requested on every issue fetch so Jira always returns a non-empty fields object
IDENTIFIER_FIELD = "summary"

# =============================================================================
# Scoring / Update Decision
# =============================================================================
SCORE_TOLERANCE = 0.0001
ASSIGNEE_PLACEHOLDER = "[assignee]"
ASSIGNEE_FIELD = "assignee"

# Trigger for skipping the comment when a null score is first set to 0
SUPPRESS_ON_MISSING_INPUTS = "missing_inputs"
SUPPRESS_ON_ALL_INPUTS_NULL = "all_inputs_null"
COMMENT_SUPPRESSION_MODES: frozenset[str] = frozenset(
    {
        SUPPRESS_ON_MISSING_INPUTS,
        SUPPRESS_ON_ALL_INPUTS_NULL,
    }
)

# =============================================================================
# Settings File / Environment
# =============================================================================
SETTINGS_FILE_NAME = "settings.yaml"

# Environment variables override the YAML values (secrets stay out of the file)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "JIRA_BASE_URL": ("jira", "base_url"),
    "JIRA_EMAIL": ("jira", "email"),
    "JIRA_API_TOKEN": ("jira", "api_token"),
    "JIRA_FILTER_ID": ("jira", "filter_id"),
    "SENDGRID_API_KEY": ("email", "api_key"),
}

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
EMAIL_TIMEOUT_SECONDS = 30


class ConfigError(ValueError):
    """Raised when the settings file is missing, malformed, or incomplete."""


@dataclass(slots=True)
class JiraSettings:
    base_url: str = ""
    api_version: str = DEFAULT_API_VERSION
    email: str = ""
    api_token: str = ""
    filter_id: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    dry_run: bool = True

    request_type_field_id: str = ""
    request_type_field_name: str = "Request Type"
    priority_score_field_id: str = ""
    reach_field_id: str = ""
    impact_field_id: str = ""
    confidence_field_id: str = ""
    effort_field_id: str = ""
    business_weight_field_id: str = ""
    time_criticality_field_id: str = ""
    risk_reduction_field_id: str = ""
    opportunity_enablement_field_id: str = ""

    request_type_product_value: str = "Product PR"
    request_type_engineering_enabler_value: str = "Engineering Enabler"
    request_type_ktlo_value: str = "Keep the Lights on (KTLO)"

    comment_suppression: str = SUPPRESS_ON_MISSING_INPUTS
    write_when_score_missing: bool = False

    # Milliseconds slept before every outbound Jira call
    request_delay_ms: int = 0
    log_request_bodies: bool = False
    log_response_bodies: bool = False
    log_headers: bool = False

    @property
    def api_root(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/api/{self.api_version}"

    def issue_field_ids(self) -> list[str]:
        """All field ids a scoring pass needs, blanks dropped, deduplicated case-insensitively."""
        candidates = [
            ASSIGNEE_FIELD,
            self.request_type_field_id,
            self.priority_score_field_id,
            self.reach_field_id,
            self.impact_field_id,
            self.confidence_field_id,
            self.effort_field_id,
            self.business_weight_field_id,
            self.time_criticality_field_id,
            self.risk_reduction_field_id,
            self.opportunity_enablement_field_id,
        ]
        seen: set[str] = set()
        out: list[str] = []
        for field_id in candidates:
            cleaned = (field_id or "").strip()
            if not cleaned or cleaned.lower() in seen:
                continue
            seen.add(cleaned.lower())
            out.append(cleaned)
        return out


@dataclass(slots=True)
class EmailSettings:
    provider: str = "SendGrid"
    api_key: str = ""
    from_email: str = ""
    to_email: str = ""
    subject: str = "JiraPriorityScore report"
    send_report: bool = True


@dataclass(slots=True)
class AppSettings:
    jira: JiraSettings = field(default_factory=JiraSettings)
    email: EmailSettings = field(default_factory=EmailSettings)
    log_level: str = "INFO"
    timezone: str = TIMEZONE
    source_path: Path | None = None

    def validate(self) -> None:
        jira = self.jira
        if not (jira.base_url.strip() and jira.email.strip() and jira.api_token.strip()) or jira.filter_id <= 0:
            raise ConfigError("Jira base_url, email, api_token, and filter_id are required.")
        if jira.comment_suppression not in COMMENT_SUPPRESSION_MODES:
            allowed = ", ".join(sorted(COMMENT_SUPPRESSION_MODES))
            raise ConfigError(f"Unknown comment_suppression '{jira.comment_suppression}' (expected one of: {allowed})")


def find_settings_file(name: str = SETTINGS_FILE_NAME, start: str | Path | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) and then from the package directory."""
    roots = [Path(start or Path.cwd()).resolve(), Path(__file__).resolve().parent]
    visited: set[Path] = set()
    for root in roots:
        for directory in (root, *root.parents):
            if directory in visited:
                continue
            visited.add(directory)
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Expected an integer, got {value!r}") from exc
    return "" if value is None else str(value)


def _build_section(cls, data: Mapping[str, Any] | None):
    instance = cls()
    if not data:
        return instance
    known = {f.name for f in fields(cls)}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{key}' for {cls.__name__}")
        setattr(instance, key, _coerce(value, getattr(instance, key)))
    return instance


def settings_from_mapping(data: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> AppSettings:
    environ = os.environ if environ is None else environ
    sections = {"jira": dict(data.get("jira") or {}), "email": dict(data.get("email") or {})}
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            sections[section][key] = value

    logging_section = data.get("logging") or {}
    return AppSettings(
        jira=_build_section(JiraSettings, sections["jira"]),
        email=_build_section(EmailSettings, sections["email"]),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        timezone=str(data.get("timezone") or TIMEZONE),
    )


def load_settings(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> AppSettings:
    """Load settings from YAML (located automatically when ``path`` is None)."""
    settings_path = Path(path) if path else find_settings_file()
    if settings_path is None:
        raise ConfigError(f"Could not find {SETTINGS_FILE_NAME} in the working directory or its parents.")
    if not settings_path.is_file():
        raise ConfigError(f"Settings file not found: {settings_path}")
    try:
        data = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {settings_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {settings_path} must contain a mapping at the top level")
    settings = settings_from_mapping(data, environ)
    settings.source_path = settings_path
    return settings
