from dataclasses import dataclass, field
from typing import Protocol, Dict, Any, List, Optional

from ..data.base import ComparableObservation, DistanceInfo, SubjectProperty
from ..services.price_normalizer import ClusterSummary

class ValuationModelError(RuntimeError):
    """Network, API or parsing failure inside a valuation model."""

@dataclass(frozen=True)
class ValuationContext:
    subject: SubjectProperty
    summary: Optional[ClusterSummary] = None
    comparables: List[ComparableObservation] = field(default_factory=list)
    distance: Optional[DistanceInfo] = None

class ValuationModel(Protocol):
    async def analyze_property(self, context: ValuationContext) -> Dict[str, Any]:
        """
        Returns the raw valuation payload with keys:
        estimatedValue, confidenceScore, keyFeatures, risks, opportunities, marketTrends.
        Shape is checked by the validator, not here.
        """
        ...

    async def generate_marketing_description(self, property_details: Dict[str, Any], target_audience: str) -> str:
        ...
