from typing import List

from events import AlertRaised
from models import SystemState

# Fixed 5% error-rate ceiling. Historically labelled the "99th percentile"
# threshold, but nothing computes a percentile; it is a constant.
ERROR_RATE_THRESHOLD = 0.05


def evaluate(state: SystemState, threshold: float = ERROR_RATE_THRESHOLD) -> List[AlertRaised]:
    """
    One alert per provider whose error rate is at or above the threshold.

    Stateless: a provider that stays above the threshold alerts again on
    every evaluation.
    """
    return [
        AlertRaised(
            provider=pid,
            error_rate=metrics.error_rate,
            threshold=threshold,
            timestamp=state.timestamp,
        )
        for pid, metrics in state.providers.items()
        if metrics.error_rate >= threshold
    ]
