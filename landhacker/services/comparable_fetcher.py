import logging
from typing import List, Optional

from ..data.base import ComparableObservation, PropertyStore

logger = logging.getLogger(__name__)

# Acreage tolerance either side of the subject
ACREAGE_TOLERANCE = 0.25


def acreage_band(acres: float, tolerance: float = ACREAGE_TOLERANCE) -> tuple[float, float]:
    return acres * (1 - tolerance), acres * (1 + tolerance)


class ComparableFetcher:
    """
    Pre-filters the property store for comps of similar size in the same
    city and zip. Outliers are left for the normalizer.
    """
    def __init__(self, store: PropertyStore):
        self.store = store

    async def fetch_comparables(self, city: str, zip_code: str, acres: float,
                                exclude_id: Optional[int] = None) -> List[ComparableObservation]:
        if not city or not zip_code or not acres or acres <= 0:
            return []
        low, high = acreage_band(acres)
        rows = await self.store.get_similar_properties(
            city=city, acres=low, max_acres=high, zip_code=zip_code, exclude_id=exclude_id
        )
        comps = [ComparableObservation.from_mapping(r) for r in rows]
        logger.info("Found %d comparable(s) for %s %s in %.2f-%.2f acres", len(comps), city, zip_code, low, high)
        return comps
