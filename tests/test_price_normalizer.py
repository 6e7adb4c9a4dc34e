"""
Tests for comparable price normalization.

Covers:
- seed-greedy clustering at the 25% threshold
- cluster selection by current value and by size
- population statistics on the selected cluster
- degenerate and invalid input
"""

import math

import pytest

from landhacker.data.base import ComparableObservation, SubjectProperty
from landhacker.services.price_normalizer import (
    REASON_LARGEST,
    REASON_NEAREST,
    cluster_prices,
    normalize,
)


def obs(*prices_per_acre):
    """One-acre observations so price == price per acre."""
    return [ComparableObservation(address=f"comp {i}", acres=1, price=p) for i, p in enumerate(prices_per_acre)]


@pytest.fixture
def no_value_subject():
    return SubjectProperty(address="subject", acres=10)


class TestClustering:
    def test_threshold_splits_distant_value(self):
        clusters = cluster_prices([100, 120, 200])
        assert [sorted(c) for c in clusters] == [[100, 120], [200]]

    def test_exact_threshold_is_inclusive(self):
        assert cluster_prices([100, 125]) == [[100, 125]]

    def test_distance_measured_from_seed_only(self):
        # 124 is within 25% of 100 but 150 is not, even though 150 is within 25% of 124
        assert [sorted(c) for c in cluster_prices([100, 124, 150])] == [[100, 124], [150]]

    def test_seed_order_changes_clusters(self):
        assert len(cluster_prices([124, 150, 100])) == 1
        assert len(cluster_prices([100, 124, 150])) == 2

    def test_every_member_within_threshold_of_seed(self):
        for cluster in cluster_prices([10, 30, 11, 29, 12, 50, 13]):
            seed = cluster[0]
            assert all(abs(v - seed) / seed <= 0.25 for v in cluster)


class TestNormalize:
    def test_empty_input_returns_none(self, no_value_subject):
        assert normalize([], no_value_subject) is None

    def test_invalid_observations_are_dropped(self, no_value_subject):
        bad = [
            ComparableObservation("no price", acres=5, price=None),
            ComparableObservation("no acres", acres=None, price=100000),
            ComparableObservation("zero acres", acres=0, price=100000),
            ComparableObservation("negative", acres=5, price=-1),
        ]
        assert normalize(bad, no_value_subject) is None

        summary = normalize(bad + [ComparableObservation("ok", acres=4, price=100000)], no_value_subject)
        assert summary.total_count == 1
        assert summary.mean == 25000

    def test_threshold_example_statistics(self, no_value_subject):
        summary = normalize(obs(100, 120, 200), no_value_subject)

        assert summary.cluster_count == 2
        assert summary.cluster_sizes == [2, 1]
        assert summary.count == 2
        assert summary.total_count == 3
        assert summary.outlier_count == 1
        assert summary.mean == pytest.approx(110)
        # Population std: sqrt(((100-110)^2 + (120-110)^2) / 2) = 10
        assert summary.std_dev == pytest.approx(10)
        assert summary.coefficient_of_variation == pytest.approx(10 / 110)
        assert (summary.min, summary.max) == (100, 120)
        assert summary.selection_reason == REASON_LARGEST
        assert summary.current_price_per_acre is None

    def test_selects_cluster_nearest_current_value_regardless_of_size(self):
        subject = SubjectProperty(address="s", acres=1, market_value=480)
        summary = normalize(obs(100, 100, 100, 500), subject)

        assert summary.mean == 500
        assert summary.count == 1
        assert summary.outlier_count == 3
        assert summary.current_price_per_acre == 480
        assert summary.selection_reason == REASON_NEAREST

    def test_nearest_tie_keeps_first_cluster(self):
        subject = SubjectProperty(address="s", acres=1, market_value=150)
        assert normalize(obs(100, 200), subject).mean == 100

    def test_falls_back_to_largest_cluster(self, no_value_subject):
        prices = [1000, 5000, 5100, 4900, 5200, 4800, 20000, 21000]
        summary = normalize(obs(*prices), no_value_subject)

        assert summary.cluster_sizes == [1, 5, 2]
        assert summary.count == 5
        assert summary.mean == pytest.approx(5000)
        assert summary.selection_reason == REASON_LARGEST

    def test_largest_tie_keeps_first_cluster(self, no_value_subject):
        assert normalize(obs(100, 200), no_value_subject).mean == 100

    def test_market_value_without_acres_uses_size(self):
        subject = SubjectProperty(address="s", acres=0, market_value=480)
        summary = normalize(obs(100, 100, 500), subject)
        assert summary.selection_reason == REASON_LARGEST
        assert summary.mean == 100

    def test_single_observation_has_zero_dispersion(self, no_value_subject):
        summary = normalize(obs(25000), no_value_subject)
        assert summary.std_dev == 0
        assert summary.coefficient_of_variation == 0
        assert summary.count == summary.total_count == 1

    def test_price_per_acre_uses_acreage(self, no_value_subject):
        comps = [
            ComparableObservation("a", acres=10, price=250000),
            ComparableObservation("b", acres=20, price=520000),
        ]
        summary = normalize(comps, no_value_subject)
        assert summary.mean == pytest.approx(25500)
        assert not math.isnan(summary.std_dev)

    def test_deterministic_for_fixed_order(self, no_value_subject):
        data = obs(24000, 31000, 25500, 90000, 26000, 15000, 18000)
        assert normalize(data, no_value_subject) == normalize(list(data), no_value_subject)
