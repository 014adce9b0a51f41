from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------- Errors ----------

class UnknownProvider(LookupError):
    """Raised when a provider id is not one of the three known providers."""

    def __init__(self, provider: object) -> None:
        super().__init__(f"unknown provider: {provider!r}")
        self.provider = provider


class InvalidMetrics(ValueError):
    """A metrics value outside its documented domain reached the scorer."""


# ---------- Domain models (in-memory) ----------

class ProviderId(str, Enum):
    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"

    @classmethod
    def parse(cls, value: object) -> "ProviderId":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownProvider(value) from None


PROVIDER_IDS: Tuple[ProviderId, ...] = tuple(ProviderId)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ProviderProfile:
    """
    Per-provider drift and recovery constants.

    GCP is tuned as the systematically more reliable provider: its error rate
    decays toward zero with a narrower jitter, its availability drifts
    upward, and a manual improve pulls it further down to a lower floor.
    These values are intentional and must not be unified across providers.
    """
    error_jitter: float
    error_decay: float
    error_bounds: Tuple[float, float]
    availability_drift: Tuple[float, float]
    availability_bounds: Tuple[float, float]
    improve_step: float
    improve_floor: float


_GENERIC_PROFILE = ProviderProfile(
    error_jitter=0.002,
    error_decay=1.0,
    error_bounds=(0.001, 0.1),
    availability_drift=(-0.05, 0.05),
    availability_bounds=(95.0, 100.0),
    improve_step=0.15,
    improve_floor=0.01,
)

PROVIDER_PROFILES: Mapping[ProviderId, ProviderProfile] = {
    ProviderId.AWS: _GENERIC_PROFILE,
    ProviderId.AZURE: _GENERIC_PROFILE,
    ProviderId.GCP: ProviderProfile(
        error_jitter=0.001,
        error_decay=0.92,
        error_bounds=(0.0005, 0.05),
        availability_drift=(-0.03, 0.07),
        availability_bounds=(96.0, 100.0),
        improve_step=0.20,
        improve_floor=0.005,
    ),
}


@dataclass(frozen=True)
class ProviderMetrics:
    response_time: float  # milliseconds
    availability_percent: float
    cost_per_request: float
    error_rate: float  # fraction, not percent
    traffic_percentage: int
    status: HealthStatus = HealthStatus.HEALTHY
    request_count: int = 0

    def evolve(self, **changes) -> "ProviderMetrics":
        return replace(self, **changes)


@dataclass(frozen=True)
class SystemState:
    """
    Snapshot of all providers at one instant.

    Instances are never mutated once built and `providers` is a read-only
    view; the controller publishes a new snapshot for every tick or override.
    """
    providers: Mapping[ProviderId, ProviderMetrics]
    total_requests: int
    timestamp: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "providers", MappingProxyType(dict(self.providers)))

    def __getitem__(self, provider: object) -> ProviderMetrics:
        return self.providers[ProviderId.parse(provider)]

    def shares(self) -> Dict[ProviderId, int]:
        return {pid: m.traffic_percentage for pid, m in self.providers.items()}

    def with_providers(
        self,
        providers: Mapping[ProviderId, ProviderMetrics],
        **changes,
    ) -> "SystemState":
        return replace(self, providers=providers, **changes)


@dataclass(frozen=True)
class ProviderSeries:
    response_time: Tuple[float, ...] = ()
    traffic_percentage: Tuple[int, ...] = ()


@dataclass(frozen=True)
class HistorySnapshot:
    timestamps: Tuple[float, ...] = ()
    series: Mapping[ProviderId, ProviderSeries] = field(
        default_factory=lambda: {pid: ProviderSeries() for pid in PROVIDER_IDS}
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "series", MappingProxyType(dict(self.series)))

    def __len__(self) -> int:
        return len(self.timestamps)

    def __getitem__(self, provider: object) -> ProviderSeries:
        return self.series[ProviderId.parse(provider)]


def default_state(timestamp: float) -> SystemState:
    """Fixed starting configuration for a fresh controller."""
    return SystemState(
        providers={
            ProviderId.AWS: ProviderMetrics(
                response_time=85.0,
                availability_percent=99.96,
                cost_per_request=0.00012,
                error_rate=0.022,
                traffic_percentage=35,
                request_count=1250,
            ),
            ProviderId.AZURE: ProviderMetrics(
                response_time=92.0,
                availability_percent=99.94,
                cost_per_request=0.00013,
                error_rate=0.018,
                traffic_percentage=33,
                request_count=1150,
            ),
            ProviderId.GCP: ProviderMetrics(
                response_time=80.0,
                availability_percent=99.97,
                cost_per_request=0.00011,
                error_rate=0.011,
                traffic_percentage=32,
                request_count=1100,
            ),
        },
        total_requests=3500,
        timestamp=timestamp,
    )


# ---------- Pydantic models for API ----------

class ProviderMetricsOut(BaseModel):
    response_time: float
    availability_percent: float
    cost_per_request: float
    error_rate: float
    traffic_percentage: int
    status: HealthStatus
    request_count: int

    model_config = ConfigDict(from_attributes=True)


class SystemStateOut(BaseModel):
    providers: Dict[ProviderId, ProviderMetricsOut]
    total_requests: int
    timestamp: float

    model_config = ConfigDict(from_attributes=True)


class ProviderSeriesOut(BaseModel):
    response_time: List[float]
    traffic_percentage: List[int]

    model_config = ConfigDict(from_attributes=True)


class HistoryOut(BaseModel):
    timestamps: List[float]
    series: Dict[ProviderId, ProviderSeriesOut]

    model_config = ConfigDict(from_attributes=True)


class ProviderSummaryOut(BaseModel):
    total_cost: float
    availability_rating: str


class SummaryOut(BaseModel):
    average_response_time: float
    overall_error_rate: float
    weighted_availability: float
    availability_rating: str
    improvement_over_worst: float
    total_cost: float
    requests_per_second: float
    providers: Dict[ProviderId, ProviderSummaryOut]


class SimulationStatusOut(BaseModel):
    running: bool
    selected_provider: Optional[ProviderId] = None
    dropped_events: int


class SelectionIn(BaseModel):
    # null clears the selection
    provider: Optional[str] = Field(None, max_length=16)


class EventOut(BaseModel):
    sequence: int
    event: Dict[str, Any]
