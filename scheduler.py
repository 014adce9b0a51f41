import math
from typing import Dict, Mapping

from models import HealthStatus, InvalidMetrics, ProviderId, ProviderMetrics, SystemState

HEALTHY_BELOW_MS = 100.0
CRITICAL_FROM_MS = 300.0


def classify(response_time: float) -> HealthStatus:
    """
    Map a response time onto a health status:
    below 100 ms healthy, 100 up to (not including) 300 ms warning,
    300 ms and above critical.
    """
    if response_time < HEALTHY_BELOW_MS:
        return HealthStatus.HEALTHY
    if response_time < CRITICAL_FROM_MS:
        return HealthStatus.WARNING
    return HealthStatus.CRITICAL


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def score(provider: ProviderId, metrics: ProviderMetrics) -> float:
    """
    Cost of sending traffic to a provider; lower is better.

    score = response_time * (error_rate + 0.5) * (cost_per_request + 0.1)
    """
    rt = metrics.response_time
    err = metrics.error_rate
    cost = metrics.cost_per_request
    if not (math.isfinite(rt) and rt > 0):
        raise InvalidMetrics(f"{provider.value}: response_time must be positive, got {rt}")
    if not (math.isfinite(err) and 0.0 <= err <= 1.0):
        raise InvalidMetrics(f"{provider.value}: error_rate must be within [0, 1], got {err}")
    if not (math.isfinite(cost) and cost >= 0):
        raise InvalidMetrics(f"{provider.value}: cost_per_request must be >= 0, got {cost}")
    return rt * (err + 0.5) * (cost + 0.1)


def compute_shares(state: SystemState) -> Dict[ProviderId, int]:
    """
    Inverse-score weighting of all providers into integer traffic shares.

    Each share is rounded on its own, so the total may drift from 100 by up
    to (provider count - 1) points. The drift is left as is.
    """
    weights = {pid: 1.0 / score(pid, m) for pid, m in state.providers.items()}
    total = sum(weights.values())
    return {pid: _round_half_away(100.0 * w / total) for pid, w in weights.items()}


def apply_shares(
    providers: Mapping[ProviderId, ProviderMetrics],
    shares: Mapping[ProviderId, int],
) -> Dict[ProviderId, ProviderMetrics]:
    return {
        pid: m.evolve(traffic_percentage=shares[pid])
        for pid, m in providers.items()
    }


def distribute_requests(new_requests: int, shares: Mapping[ProviderId, int]) -> Dict[ProviderId, int]:
    """
    Split a batch of requests by share, flooring each provider's portion.

    The floored remainder is not assigned to anyone.
    """
    return {pid: (new_requests * share) // 100 for pid, share in shares.items()}
