import json
from typing import Any, Dict

from .base import ValuationContext
from ..core.utils import format_currency
from ..services.valuation_validator import (
    FALLBACK_PRICE_PER_ACRE,
    MAX_PRICE_PER_ACRE,
    MIN_PRICE_PER_ACRE,
)

VALUATION_SYSTEM = (
    "You are a real estate analysis expert specialising in undeveloped land. "
    "Respond ONLY with a valid JSON object."
)

MARKETING_SYSTEM = "You are a real estate marketing expert. Create compelling property descriptions."

NO_COMPS_LINE = "No comparable sales data is available; use market estimates."

def comparables_section(context: ValuationContext) -> str:
    s = context.summary
    if s is None:
        return NO_COMPS_LINE
    lines = [
        f"Comparable land nearby averages {format_currency(s.mean)}/acre "
        f"(range {format_currency(s.min)}-{format_currency(s.max)}, "
        f"std dev {format_currency(s.std_dev)}, CV {s.coefficient_of_variation:.2f}).",
        f"Based on {s.count} of {s.total_count} comparable(s) in {s.cluster_count} price group(s); "
        f"{s.outlier_count} outlier(s) excluded; group chosen as {s.selection_reason}.",
    ]
    for comp in context.comparables[:10]:
        if comp.is_valid:
            lines.append(f"- {comp.address}: {comp.acres:g} acres, {format_currency(comp.price)} "
                         f"({format_currency(comp.price_per_acre)}/acre)")
    return "\n".join(lines)

def build_valuation_prompt(context: ValuationContext) -> str:
    subject = context.subject
    parts = [
        "Please analyze this property:",
        f"Address: {subject.address}",
        f"Acres: {subject.acres:g}",
    ]
    if subject.latitude is not None and subject.longitude is not None:
        parts.append(f"Coordinates: {subject.latitude}, {subject.longitude}")
    if subject.market_value:
        parts.append(f"Listed Price: {format_currency(subject.market_value)}")
    if context.distance is not None:
        d = context.distance
        parts.append(f"Distance to {d.nearest_city}: {d.distance_text} ({d.duration_text} drive)")
    parts += [
        "",
        comparables_section(context),
        "",
        f"Typical land in this market trades between {format_currency(MIN_PRICE_PER_ACRE)} and "
        f"{format_currency(MAX_PRICE_PER_ACRE)} per acre; when unsure stay near "
        f"{format_currency(FALLBACK_PRICE_PER_ACRE)}. It is better to underestimate than overestimate.",
        "",
        "Return JSON with keys: estimatedValue (integer USD), confidenceScore (0-1), "
        "keyFeatures (string[]), risks (string[]), opportunities (string[]), "
        'marketTrends ({"direction": "up"|"down"|"stable", "reasoning": string}).',
    ]
    return "\n".join(parts)

def build_marketing_prompt(property_details: Dict[str, Any], target_audience: str) -> str:
    return (
        f"Create a marketing description for this property targeting {target_audience}:\n"
        f"{json.dumps(property_details, indent=2, default=str)}"
    )
