import pytest

from models import PROVIDER_IDS, ProviderMetrics, SystemState
from simulation import ManualClock, SeededRandom
from state import SimulationController


class RecordingSink:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]

    def clear(self):
        self.events.clear()


def make_state(shares=(34, 33, 33), response_time=90.0, error_rate=0.02, cost=0.0001, requests=0):
    return SystemState(
        providers={
            pid: ProviderMetrics(
                response_time=response_time,
                availability_percent=99.9,
                cost_per_request=cost,
                error_rate=error_rate,
                traffic_percentage=share,
                request_count=requests,
            )
            for pid, share in zip(PROVIDER_IDS, shares)
        },
        total_requests=requests * len(PROVIDER_IDS),
        timestamp=0.0,
    )


@pytest.fixture
def clock():
    return ManualClock(start=1000.0)


@pytest.fixture
def rng():
    return SeededRandom(42)


@pytest.fixture
def recorder():
    return RecordingSink()


@pytest.fixture
def controller(clock, rng, recorder):
    return SimulationController(clock=clock, rng=rng, sinks=[recorder])
