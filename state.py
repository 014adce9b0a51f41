import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import alerts
import history
import scheduler
from events import (
    Event,
    EventSink,
    ManualOverride,
    OverrideKind,
    StatusChanged,
    TrafficShiftDetected,
    dispatch,
)
from models import (
    PROVIDER_IDS,
    PROVIDER_PROFILES,
    HealthStatus,
    HistorySnapshot,
    ProviderId,
    ProviderMetrics,
    SystemState,
    default_state,
)
from simulation import Clock, RandomSource, SeededRandom, ThreadClock, perturb

logger = logging.getLogger("traffic_router.api")

TICK_INTERVAL_SECONDS = 1.5
NEW_REQUESTS_RANGE = (50, 150)  # upper bound exclusive
TRAFFIC_SHIFT_POINTS = 10
DEGRADE_RESPONSE_TIME_MS = 200.0
DEGRADE_ERROR_STEP = 0.15
DEGRADE_ERROR_CEILING = 0.3
IMPROVE_RESPONSE_TIME_MS = 200.0
IMPROVE_RESPONSE_TIME_FLOOR_MS = 70.0


class SimulationController:
    """
    Owns the provider state and its history, and is the only thing that
    replaces them.

    Every mutation (tick, degrade, improve) reads the current state, builds
    the next one and publishes it while holding a single lock, so readers
    only ever see complete snapshots. Events are delivered to the sinks
    after the new snapshot is published.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        rng: Optional[RandomSource] = None,
        sinks: Iterable[EventSink] = (),
        tick_interval: float = TICK_INTERVAL_SECONDS,
        history_limit: int = history.MAX_HISTORY_POINTS,
        alert_threshold: float = alerts.ERROR_RATE_THRESHOLD,
        initial_state: Optional[SystemState] = None,
    ) -> None:
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        if initial_state is not None and set(initial_state.providers) != set(PROVIDER_IDS):
            raise ValueError("initial_state must hold exactly the known providers")
        self.clock: Clock = clock or ThreadClock()
        self.rng: RandomSource = rng or SeededRandom()
        self.tick_interval = tick_interval
        self.history_limit = history_limit
        self.alert_threshold = alert_threshold
        self._sinks: List[EventSink] = list(sinks)

        # (state, history) is replaced as one tuple so readers never see a mix
        self._current: Tuple[SystemState, HistorySnapshot] = (
            initial_state or default_state(self.clock.now()),
            HistorySnapshot(),
        )
        self._selected: Optional[ProviderId] = None
        self._dropped_events = 0

        self._lock = threading.Lock()
        # start/stop are serialised separately so they never wait on a tick
        self._lifecycle_lock = threading.Lock()
        self._timer = None
        self._running = False
        # bumped by start/stop so a stale worker cannot clear a newer timer
        self._generation = 0

    # ---------- Read side ----------

    def get_state(self) -> SystemState:
        return self._current[0]

    def get_history(self) -> HistorySnapshot:
        return self._current[1]

    def snapshot(self) -> Tuple[SystemState, HistorySnapshot]:
        return self._current

    def is_running(self) -> bool:
        return self._running

    @property
    def selected_provider(self) -> Optional[ProviderId]:
        return self._selected

    @property
    def dropped_events(self) -> int:
        """Number of sink deliveries that raised."""
        return self._dropped_events

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    # ---------- Lifecycle ----------

    def start(self) -> None:
        with self._lifecycle_lock:
            previous = self._timer
            self._generation += 1
            self._timer = self.clock.schedule(self.tick_interval, self._periodic_tick(self._generation))
            self._running = True
        # cancel may wait for an in-flight tick, so it runs outside the lock
        if previous is not None:
            self.clock.cancel(previous)
        logger.info("Simulation started (interval %.2fs)", self.tick_interval)

    def stop(self) -> None:
        with self._lifecycle_lock:
            previous, self._timer = self._timer, None
            self._generation += 1
            self._running = False
        if previous is not None:
            self.clock.cancel(previous)
        logger.info("Simulation stopped")

    def _periodic_tick(self, generation: int) -> Callable[[], None]:
        def run() -> None:
            try:
                self.tick()
            except Exception:
                timer = None
                with self._lifecycle_lock:
                    # skip if a later start() or stop() replaced this timer
                    if self._generation == generation:
                        timer, self._timer = self._timer, None
                        self._running = False
                if timer is not None:
                    self.clock.cancel(timer)
                    logger.warning("Simulation stopped after a failed tick")
                raise

        return run

    def select_provider(self, provider: Optional[object]) -> Optional[ProviderId]:
        """UI selection only; it has no effect on the simulation."""
        pid = None if provider is None else ProviderId.parse(provider)
        if pid is not None:
            logger.debug("Provider %s selected by user", pid.value)
        self._selected = pid
        return pid

    # ---------- Mutations ----------

    def tick(self) -> SystemState:
        """One update cycle: drift, classify, score, count, alert, archive."""
        with self._lock:
            old = self._current[0]
            now = self.clock.now()

            drifted = {
                pid: m.evolve(status=scheduler.classify(m.response_time))
                for pid, m in perturb(old, self.rng).items()
            }
            shares = scheduler.compute_shares(old.with_providers(drifted))
            scored = scheduler.apply_shares(drifted, shares)

            new_requests = self.rng.uniform_int(*NEW_REQUESTS_RANGE)
            served = scheduler.distribute_requests(new_requests, shares)
            counted = {
                pid: m.evolve(request_count=m.request_count + served[pid])
                for pid, m in scored.items()
            }
            new = old.with_providers(
                counted,
                total_requests=old.total_requests + sum(served.values()),
                timestamp=now,
            )

            pending: List[Event] = list(alerts.evaluate(new, self.alert_threshold))
            pending.extend(self._changes(old, new, now))
            self._publish(new, now)

        self._emit(pending)
        return new

    def degrade(self, provider: object) -> SystemState:
        pid = ProviderId.parse(provider)

        def worsen(m: ProviderMetrics) -> ProviderMetrics:
            return m.evolve(
                response_time=m.response_time + DEGRADE_RESPONSE_TIME_MS,
                error_rate=min(DEGRADE_ERROR_CEILING, m.error_rate + DEGRADE_ERROR_STEP),
                status=HealthStatus.CRITICAL,
            )

        return self._override(pid, OverrideKind.DEGRADE, worsen)

    def improve(self, provider: object) -> SystemState:
        pid = ProviderId.parse(provider)
        profile = PROVIDER_PROFILES[pid]

        def recover(m: ProviderMetrics) -> ProviderMetrics:
            return m.evolve(
                response_time=max(IMPROVE_RESPONSE_TIME_FLOOR_MS, m.response_time - IMPROVE_RESPONSE_TIME_MS),
                error_rate=max(profile.improve_floor, m.error_rate - profile.improve_step),
                status=HealthStatus.HEALTHY,
            )

        return self._override(pid, OverrideKind.IMPROVE, recover)

    # ---------- Internals ----------

    def _override(
        self,
        pid: ProviderId,
        kind: OverrideKind,
        change: Callable[[ProviderMetrics], ProviderMetrics],
    ) -> SystemState:
        with self._lock:
            old = self._current[0]
            now = self.clock.now()

            providers: Dict[ProviderId, ProviderMetrics] = dict(old.providers)
            providers[pid] = change(providers[pid])
            # shares are relative, so every provider is rescored
            shares = scheduler.compute_shares(old.with_providers(providers))
            new = old.with_providers(scheduler.apply_shares(providers, shares), timestamp=now)

            target = new.providers[pid]
            pending: List[Event] = [
                ManualOverride(
                    provider=pid,
                    kind=kind,
                    response_time=target.response_time,
                    error_rate=target.error_rate,
                    status=target.status,
                    timestamp=now,
                )
            ]
            pending.extend(alerts.evaluate(new, self.alert_threshold))
            self._publish(new, now)

        self._emit(pending)
        return new

    def _changes(self, old: SystemState, new: SystemState, now: float) -> List[Event]:
        changes: List[Event] = []
        for pid, current in new.providers.items():
            previous = old.providers[pid]
            if current.status != previous.status:
                changes.append(
                    StatusChanged(
                        provider=pid,
                        previous=previous.status,
                        current=current.status,
                        response_time=current.response_time,
                        error_rate=current.error_rate,
                        traffic_percentage=current.traffic_percentage,
                        timestamp=now,
                    )
                )
        before, after = old.shares(), new.shares()
        if any(abs(after[pid] - before[pid]) > TRAFFIC_SHIFT_POINTS for pid in after):
            changes.append(TrafficShiftDetected(previous=before, current=after, timestamp=now))
        return changes

    def _publish(self, state: SystemState, now: float) -> None:
        # caller holds self._lock
        archived = history.append(self._current[1], state, now, self.history_limit)
        self._current = (state, archived)

    def _emit(self, pending: List[Event]) -> None:
        failures = sum(dispatch(event, list(self._sinks)) for event in pending)
        if failures:
            with self._lock:
                self._dropped_events += failures
