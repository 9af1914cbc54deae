"""Domain data models for the scoring run: issues, scores, outcomes, and client results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class IssueRef:
    key: str


class RequestType(Enum):
    PRODUCT = "Product PR"
    ENGINEERING_OR_KTLO = "Engineering Enabler/KTLO"
    UNMATCHED = "Unmatched"


@dataclass(frozen=True, slots=True)
class Assignee:
    account_id: str | None = None
    display_name: str | None = None


@dataclass(frozen=True, slots=True)
class ProductInputs:
    reach: float | None
    impact: float | None
    confidence: float | None
    effort: float | None

    def labelled(self) -> list[tuple[str, float | None]]:
        return [
            ("Reach", self.reach),
            ("Impact", self.impact),
            ("Confidence", self.confidence),
            ("Effort", self.effort),
        ]


@dataclass(frozen=True, slots=True)
class EngineeringInputs:
    business_weight: float | None
    time_criticality: float | None
    risk_reduction: float | None
    opportunity_enablement: float | None

    def labelled(self) -> list[tuple[str, float | None]]:
        return [
            ("Business Weight", self.business_weight),
            ("Time Criticality", self.time_criticality),
            ("Risk Reduction", self.risk_reduction),
            ("Opportunity Enablement", self.opportunity_enablement),
        ]


@dataclass(frozen=True, slots=True)
class ScoreResult:
    current_score: float | None
    computed_score: int
    missing_inputs: bool
    all_inputs_null: bool
    should_skip_comment: bool = False


@dataclass(slots=True)
class RunStats:
    processed: int = 0
    updated: int = 0
    commented: int = 0

    def reset(self) -> None:
        self.processed = 0
        self.updated = 0
        self.commented = 0


@dataclass(frozen=True, slots=True)
class IssueOutcome:
    key: str
    request_type: str | None
    current_score: float | None
    computed_score: int | None
    action: str


class FailureKind(Enum):
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    MISSING_FIELDS = "missing_fields"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a Jira call: ``ok`` with a value, or a failure kind with detail."""

    ok: bool
    value: T | None = None
    kind: FailureKind | None = None
    detail: str = ""
    status: int | None = None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str = "", status: int | None = None) -> Result[T]:
        return cls(ok=False, kind=kind, detail=detail, status=status)
