from dataclasses import dataclass
from typing import Dict

from models import ProviderId, SystemState

# Requests are reported as if the running total covered a five second window.
REQUEST_WINDOW_SECONDS = 5.0


def availability_rating(availability: float) -> str:
    if availability >= 99.95:
        return "excellent"
    if availability >= 99.9:
        return "good"
    if availability >= 99.5:
        return "moderate"
    return "poor"


@dataclass(frozen=True)
class ProviderSummary:
    total_cost: float
    availability_rating: str


@dataclass(frozen=True)
class Summary:
    average_response_time: float
    overall_error_rate: float
    weighted_availability: float
    availability_rating: str
    improvement_over_worst: float
    total_cost: float
    requests_per_second: float
    providers: Dict[ProviderId, ProviderSummary]


def _weighted(state: SystemState, attr: str) -> float:
    return sum(getattr(m, attr) * m.traffic_percentage for m in state.providers.values()) / 100.0


def summarize(state: SystemState) -> Summary:
    """Traffic-weighted view of the whole fleet for one snapshot."""
    providers = {
        pid: ProviderSummary(
            total_cost=m.cost_per_request * m.request_count,
            availability_rating=availability_rating(m.availability_percent),
        )
        for pid, m in state.providers.items()
    }
    weighted_availability = _weighted(state, "availability_percent")
    worst = min(m.availability_percent for m in state.providers.values())
    return Summary(
        average_response_time=_weighted(state, "response_time"),
        overall_error_rate=_weighted(state, "error_rate"),
        weighted_availability=weighted_availability,
        availability_rating=availability_rating(weighted_availability),
        improvement_over_worst=weighted_availability - worst,
        total_cost=sum(p.total_cost for p in providers.values()),
        requests_per_second=state.total_requests / REQUEST_WINDOW_SECONDS,
        providers=providers,
    )
