"""
Reduces noisy comparable sales to one representative price per acre.

Values are grouped by greedy seed clustering: the first unclustered value
seeds a cluster and absorbs every remaining value within 25% of the seed.
Distance is measured against the seed only, so clusters are order dependent
and not pairwise bounded.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

import numpy as np

from ..data.base import ComparableObservation, SubjectProperty

SIMILARITY_THRESHOLD = 0.25

REASON_NEAREST = "nearest to property's current value"
REASON_LARGEST = "largest cluster available"


@dataclass(frozen=True)
class ClusterSummary:
    mean: float
    std_dev: float
    coefficient_of_variation: float
    min: float
    max: float
    count: int
    total_count: int
    outlier_count: int
    cluster_count: int
    cluster_sizes: List[int]
    current_price_per_acre: Optional[float]
    selection_reason: str

    def to_dict(self) -> dict:
        return asdict(self)


def cluster_prices(values: Iterable[float], threshold: float = SIMILARITY_THRESHOLD) -> List[List[float]]:
    """Seed-greedy clustering in processing order."""
    remaining = list(values)
    clusters: List[List[float]] = []
    while remaining:
        seed = remaining.pop(0)
        cluster = [seed]
        # Scan from the back so pops don't shift unvisited indices
        for i in range(len(remaining) - 1, -1, -1):
            if abs(remaining[i] - seed) / seed <= threshold:
                cluster.append(remaining.pop(i))
        clusters.append(cluster)
    return clusters


def select_cluster(clusters: List[List[float]], current_price_per_acre: Optional[float]) -> tuple[List[float], str]:
    if current_price_per_acre is not None:
        best, best_diff = clusters[0], float("inf")
        for cluster in clusters:
            diff = abs(float(np.mean(cluster)) - current_price_per_acre)
            if diff < best_diff:
                best, best_diff = cluster, diff
        return best, REASON_NEAREST
    # sorted() is stable, so equal sizes keep first-formed order
    return sorted(clusters, key=len, reverse=True)[0], REASON_LARGEST


def normalize(observations: Iterable[ComparableObservation], subject: SubjectProperty) -> Optional[ClusterSummary]:
    """
    Returns the summary of the representative cluster, or None when no
    observation carries both a positive price and a positive acreage.
    """
    prices = [o.price_per_acre for o in observations if o.is_valid]
    if not prices:
        return None

    clusters = cluster_prices(prices)
    current = subject.current_price_per_acre if subject is not None else None
    selected, reason = select_cluster(clusters, current)

    arr = np.asarray(selected, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std())  # population (ddof=0)
    return ClusterSummary(
        mean=mean,
        std_dev=std,
        coefficient_of_variation=std / mean,
        min=float(arr.min()),
        max=float(arr.max()),
        count=len(selected),
        total_count=len(prices),
        outlier_count=len(prices) - len(selected),
        cluster_count=len(clusters),
        cluster_sizes=[len(c) for c in clusters],
        current_price_per_acre=current,
        selection_reason=reason,
    )
