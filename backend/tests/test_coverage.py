"""
Tests for services/coverage.py — landing-page top states by follower count.
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models.schemas import DemographicSnapshot
from services.coverage import compute_coverage_regions


def make_snapshot(user, cities, engaged=None):
    demographics = {"follower_demographics": {"city": cities}}
    if engaged is not None:
        demographics["engaged_audience_demographics"] = {"city": engaged}
    return DemographicSnapshot(user=user, demographics=demographics)


class TestCoverageRegions:

    def test_ranks_states_with_share(self):
        snapshots = [
            make_snapshot("u1", {"São Paulo": 60, "Recife": 10}),
            make_snapshot("u2", {"Campinas": 20, "Curitiba": 10, "Paris": 500}),
        ]
        regions = compute_coverage_regions(snapshots, limit=2)

        # PE and PR tie at 10; first seen wins
        assert [r.code for r in regions] == ["SP", "PE"]
        sp = regions[0]
        assert sp.code == "SP"
        assert sp.label == "São Paulo"
        assert sp.region == "Sudeste"
        assert sp.followers == 80
        assert sp.share == pytest.approx(0.8)
        assert sp.engaged_followers is None
        assert sp.engaged_share is None

    def test_limit_respected(self):
        snapshots = [make_snapshot("u1", {"São Paulo": 3, "Recife": 2, "Manaus": 1})]
        assert len(compute_coverage_regions(snapshots, limit=1)) == 1
        assert len(compute_coverage_regions(snapshots, limit=10)) == 3

    def test_engaged_audience(self):
        snapshots = [
            make_snapshot("u1", {"Salvador": 50, "Natal": 50}, engaged={"Salvador": 3, "Natal": 1}),
        ]
        regions = {r.code: r for r in compute_coverage_regions(snapshots, limit=5)}
        assert regions["BA"].engaged_followers == 3
        assert regions["BA"].engaged_share == pytest.approx(0.75)
        assert regions["RN"].engaged_share == pytest.approx(0.25)

    def test_no_resolvable_cities(self):
        assert compute_coverage_regions([make_snapshot("u1", {"Lima": 5})], limit=3) == []
