"""Tests for status classification, scoring and request distribution."""

import math
import random

import pytest

import scheduler
from models import HealthStatus, InvalidMetrics, ProviderId, default_state
from tests.conftest import make_state


class TestClassify:

    @pytest.mark.parametrize(
        "response_time, expected",
        [
            (20, HealthStatus.HEALTHY),
            (99, HealthStatus.HEALTHY),
            (99.999, HealthStatus.HEALTHY),
            (100, HealthStatus.WARNING),
            (299, HealthStatus.WARNING),
            (299.999, HealthStatus.WARNING),
            (300, HealthStatus.CRITICAL),
            (5000, HealthStatus.CRITICAL),
        ],
    )
    def test_boundaries(self, response_time, expected):
        assert scheduler.classify(response_time) is expected


class TestComputeShares:

    def test_default_state_shares(self):
        shares = scheduler.compute_shares(default_state(0.0))
        assert shares == {ProviderId.AWS: 33, ProviderId.AZURE: 31, ProviderId.GCP: 36}

    def test_equal_metrics_split_evenly(self):
        shares = scheduler.compute_shares(make_state())
        assert set(shares.values()) == {33}
        assert sum(shares.values()) == 99  # independent rounding, not renormalised

    def test_slower_provider_gets_less(self):
        state = make_state()
        providers = dict(state.providers)
        providers[ProviderId.AZURE] = providers[ProviderId.AZURE].evolve(response_time=400.0)
        shares = scheduler.compute_shares(state.with_providers(providers))
        assert shares[ProviderId.AZURE] < shares[ProviderId.AWS]
        assert shares[ProviderId.AWS] == shares[ProviderId.GCP]

    def test_shares_stay_within_rounding_tolerance(self):
        r = random.Random(7)
        for _ in range(500):
            state = make_state()
            providers = {
                pid: m.evolve(
                    response_time=r.uniform(20, 2000),
                    error_rate=r.uniform(0.0, 1.0),
                    cost_per_request=r.uniform(0.0, 5.0),
                )
                for pid, m in state.providers.items()
            }
            shares = scheduler.compute_shares(state.with_providers(providers))
            assert all(0 <= s <= 100 for s in shares.values())
            assert 98 <= sum(shares.values()) <= 102

    @pytest.mark.parametrize(
        "field, value",
        [
            ("response_time", 0.0),
            ("response_time", -5.0),
            ("response_time", math.nan),
            ("error_rate", 1.5),
            ("error_rate", -0.1),
            ("cost_per_request", -0.01),
            ("cost_per_request", math.inf),
        ],
    )
    def test_out_of_contract_metrics_raise(self, field, value):
        state = make_state()
        providers = dict(state.providers)
        providers[ProviderId.GCP] = providers[ProviderId.GCP].evolve(**{field: value})
        with pytest.raises(InvalidMetrics):
            scheduler.compute_shares(state.with_providers(providers))

    def test_rounds_half_away_from_zero(self):
        assert scheduler._round_half_away(2.5) == 3
        assert scheduler._round_half_away(0.5) == 1
        assert scheduler._round_half_away(2.4999) == 2
        assert scheduler._round_half_away(-2.5) == -3


class TestDistributeRequests:

    def test_floors_each_portion(self):
        served = scheduler.distribute_requests(
            149, {ProviderId.AWS: 33, ProviderId.AZURE: 31, ProviderId.GCP: 36}
        )
        assert served == {ProviderId.AWS: 49, ProviderId.AZURE: 46, ProviderId.GCP: 53}
        assert sum(served.values()) <= 149

    def test_zero_share_gets_nothing(self):
        served = scheduler.distribute_requests(
            100, {ProviderId.AWS: 0, ProviderId.AZURE: 50, ProviderId.GCP: 50}
        )
        assert served[ProviderId.AWS] == 0
