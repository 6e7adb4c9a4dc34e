from typing import Dict, Any
from .base import ValuationContext, ValuationModel
from ..core.utils import fnv1a_32, seeded_rand, format_currency, normalize_address
from ..services.valuation_validator import FALLBACK_PRICE_PER_ACRE

class MockModel(ValuationModel):
    """
    Deterministic placeholder model. Prices off the comparable summary when
    there is one, otherwise off the market fallback, with a little
    address-seeded variation so different parcels don't look identical.
    """
    async def analyze_property(self, context: ValuationContext) -> Dict[str, Any]:
        subject = context.subject
        seed = fnv1a_32(normalize_address(subject.address or "unknown"))
        jitter = 0.95 + seeded_rand(seed, 1)[0] * 0.10  # ±5%

        summary = context.summary
        if summary is not None:
            per_acre = summary.mean
            # Tighter, larger clusters deserve more trust
            confidence = 0.55 + min(0.3, summary.count * 0.05) - min(0.2, summary.coefficient_of_variation)
        else:
            per_acre = FALLBACK_PRICE_PER_ACRE
            confidence = 0.45

        estimated = int(round(subject.acres * per_acre * jitter))
        features = [f"{subject.acres:g} acres"]
        if context.distance is not None:
            features.append(f"{context.distance.distance_text} from {context.distance.nearest_city}")
        trend = ("up", "down", "stable")[seed % 3]

        return {
            "estimatedValue": estimated,
            "confidenceScore": round(max(0.1, min(0.95, confidence)), 2),
            "keyFeatures": features,
            "risks": ["Limited recent comparable sales."] if summary is None or summary.count < 3 else [],
            "opportunities": ["Acreage suits subdivision or recreational use."],
            "marketTrends": {
                "direction": trend,
                "reasoning": (
                    f"Comparable land averages {format_currency(per_acre)}/acre."
                    if summary is not None else "No comparable data; based on market estimates."
                ),
            },
        }

    async def generate_marketing_description(self, property_details: Dict[str, Any], target_audience: str) -> str:
        address = property_details.get("address") or "This property"
        acres = property_details.get("acres")
        size = f"{acres:g} acres" if isinstance(acres, (int, float)) else "acreage"
        return (
            f"{address}: {size} of open land, ideal for {target_audience}. "
            "Room to build, invest or hold, with easy access to nearby towns."
        )
