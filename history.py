from typing import Tuple, TypeVar

from models import HistorySnapshot, ProviderSeries, SystemState

MAX_HISTORY_POINTS = 20

T = TypeVar("T")


def _keep_last(series: Tuple[T, ...], value: T, limit: int) -> Tuple[T, ...]:
    return (series + (value,))[-limit:]


def append(
    history: HistorySnapshot,
    state: SystemState,
    timestamp: float,
    limit: int = MAX_HISTORY_POINTS,
) -> HistorySnapshot:
    """
    Return a new history with one more point per series.

    Every series is cut to the same most-recent `limit` entries so indices
    stay aligned with `timestamps`. The input history is left untouched.
    """
    if limit < 1:
        raise ValueError("history limit must be at least 1")

    series = {}
    for pid, metrics in state.providers.items():
        previous = history.series.get(pid, ProviderSeries())
        series[pid] = ProviderSeries(
            response_time=_keep_last(previous.response_time, metrics.response_time, limit),
            traffic_percentage=_keep_last(previous.traffic_percentage, metrics.traffic_percentage, limit),
        )

    return HistorySnapshot(
        timestamps=_keep_last(history.timestamps, timestamp, limit),
        series=series,
    )
