"""Schema check and price-per-acre sanity band for AI valuations."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError

from ..core.metrics import ESTIMATE_CORRECTIONS
from ..schemas import ValuationEstimate
from .errors import InvalidEstimateFormat

logger = logging.getLogger(__name__)

# Plausible undeveloped-land range for the target market, USD per acre
MIN_PRICE_PER_ACRE = 15_000
MAX_PRICE_PER_ACRE = 35_000
# Correction target for out-of-band estimates
FALLBACK_PRICE_PER_ACRE = 25_000
CORRECTED_CONFIDENCE_CAP = 0.7

RawEstimate = Union[ValuationEstimate, Mapping[str, Any], str, bytes]


def parse_estimate(raw: RawEstimate) -> ValuationEstimate:
    if isinstance(raw, ValuationEstimate):
        return raw
    try:
        if isinstance(raw, (str, bytes)):
            return ValuationEstimate.model_validate_json(raw)
        if not isinstance(raw, Mapping):
            raise InvalidEstimateFormat(f"Expected a JSON object, got {type(raw).__name__}")
        return ValuationEstimate.model_validate(dict(raw))
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise InvalidEstimateFormat(f"Invalid AI response format: {', '.join(fields)}") from exc


def in_band(price_per_acre: float) -> bool:
    return MIN_PRICE_PER_ACRE <= price_per_acre <= MAX_PRICE_PER_ACRE


def validate(estimate: RawEstimate, subject_acres: float) -> ValuationEstimate:
    """
    Pulls an out-of-band estimate back to ``subject_acres * 25000`` and caps
    its confidence at 0.7. In-band estimates come back unchanged.
    """
    if not subject_acres or subject_acres <= 0:
        raise ValueError("subject_acres must be positive")
    parsed = parse_estimate(estimate)

    implied = parsed.estimated_value / subject_acres
    if in_band(implied):
        return parsed

    corrected = parsed.model_copy(update={
        "estimated_value": int(round(subject_acres * FALLBACK_PRICE_PER_ACRE)),
        "confidence_score": min(parsed.confidence_score, CORRECTED_CONFIDENCE_CAP),
    })
    ESTIMATE_CORRECTIONS.inc()
    logger.warning(
        "Estimated price per acre $%.0f outside $%d-$%d, adjusted to $%d",
        implied, MIN_PRICE_PER_ACRE, MAX_PRICE_PER_ACRE, corrected.estimated_value,
        extra={"implied_price_per_acre": round(implied, 2)},
    )
    return corrected


def estimate_to_json(estimate: ValuationEstimate) -> dict:
    """Wire/storage form, camelCase keys."""
    return estimate.model_dump(mode="json", by_alias=True)
