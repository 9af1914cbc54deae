"""Priority score formulas."""

from __future__ import annotations

import math

from .models import EngineeringInputs, ProductInputs

BUSINESS_WEIGHT_FACTOR = 0.2
TIME_CRITICALITY_FACTOR = 0.3
RISK_REDUCTION_FACTOR = 0.3
OPPORTUNITY_ENABLEMENT_FACTOR = 0.2
ENGINEERING_SCALE = 1000


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _rounded_or_zero(raw: float) -> int:
    # Finite inputs can still overflow to inf or produce nan (inf * 0)
    if not math.isfinite(raw):
        return 0
    return round_half_away(raw)


def product_missing_inputs(inputs: ProductInputs) -> bool:
    return any(v is None for _, v in inputs.labelled()) or inputs.effort == 0


def product_score(inputs: ProductInputs) -> int:
    """Reach * Impact * Confidence / Effort; 0 on a missing input, zero effort, or a non-finite result."""
    if product_missing_inputs(inputs):
        return 0
    return _rounded_or_zero(inputs.reach * inputs.impact * inputs.confidence / inputs.effort)


def engineering_missing_inputs(inputs: EngineeringInputs) -> bool:
    return any(v is None for _, v in inputs.labelled())


def engineering_score(inputs: EngineeringInputs) -> int:
    """Weighted WSJF-style blend mapped onto a 0..1000 scale; 0 when an input is missing."""
    if engineering_missing_inputs(inputs):
        return 0
    weighted = (
        inputs.business_weight * BUSINESS_WEIGHT_FACTOR
        + inputs.time_criticality * TIME_CRITICALITY_FACTOR
        + inputs.risk_reduction * RISK_REDUCTION_FACTOR
        + inputs.opportunity_enablement * OPPORTUNITY_ENABLEMENT_FACTOR
    )
    return _rounded_or_zero((weighted - 1) / 3 * ENGINEERING_SCALE)


def all_inputs_null(inputs: ProductInputs | EngineeringInputs) -> bool:
    return all(v is None for _, v in inputs.labelled())
