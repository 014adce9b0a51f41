import itertools
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from models import PROVIDER_PROFILES, ProviderId, ProviderMetrics, SystemState

logger = logging.getLogger("traffic_router.api")

MIN_RESPONSE_TIME_MS = 20.0
RESPONSE_TIME_JITTER_MS = 5.0


# ---------- Clocks ----------

class Clock(Protocol):
    def now(self) -> float: ...

    def schedule(self, interval: float, callback: Callable[[], None]) -> object: ...

    def cancel(self, handle: object) -> None: ...


@dataclass
class _WorkerHandle:
    thread: threading.Thread
    stopped: threading.Event


class ThreadClock:
    """
    Wall clock that runs each scheduled callback on its own daemon thread.

    - interval: seconds between calls; the first call happens one interval
      after scheduling.
    - join_timeout: how long cancel() waits for a callback already running
      to finish. cancel() called from the worker itself does not wait.
    """

    def __init__(self, join_timeout: float = 1.0) -> None:
        self.join_timeout = join_timeout

    def now(self) -> float:
        return time.time()

    def schedule(self, interval: float, callback: Callable[[], None]) -> _WorkerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        stopped = threading.Event()

        def worker() -> None:
            while not stopped.wait(interval):
                try:
                    callback()
                except Exception:
                    logger.exception("Periodic callback failed; stopping worker")
                    stopped.set()

        t = threading.Thread(target=worker, name="traffic-router-tick", daemon=True)
        handle = _WorkerHandle(thread=t, stopped=stopped)
        t.start()
        return handle

    def cancel(self, handle: object) -> None:
        if isinstance(handle, _WorkerHandle):
            handle.stopped.set()
            if handle.thread is not threading.current_thread():
                handle.thread.join(timeout=self.join_timeout)
                if handle.thread.is_alive():
                    logger.warning("Tick worker still running %.1fs after cancel", self.join_timeout)


class ManualClock:
    """Clock whose time only moves when advance() is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._ids = itertools.count(1)
        # handle -> [interval, next due time, callback]
        self._timers: Dict[int, List] = {}

    def now(self) -> float:
        return self._now

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    def schedule(self, interval: float, callback: Callable[[], None]) -> int:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = next(self._ids)
        self._timers[handle] = [interval, self._now + interval, callback]
        return handle

    def cancel(self, handle: object) -> None:
        self._timers.pop(handle, None)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [(t[1], h) for h, t in self._timers.items() if t[1] <= target]
            if not due:
                break
            when, handle = min(due)
            timer = self._timers[handle]
            self._now = when
            timer[1] = when + timer[0]
            timer[2]()
        self._now = target


# ---------- Randomness ----------

class RandomSource(Protocol):
    def uniform(self, low: float, high: float) -> float: ...

    def uniform_int(self, low: int, high_exclusive: int) -> int: ...


class SeededRandom:
    """random.Random behind the RandomSource interface; seed=None is nondeterministic."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def uniform(self, low: float, high: float) -> float:
        return self._rng.uniform(low, high)

    def uniform_int(self, low: int, high_exclusive: int) -> int:
        return self._rng.randrange(low, high_exclusive)


# ---------- Metric drift ----------

def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def perturb_provider(provider: ProviderId, metrics: ProviderMetrics, rng: RandomSource) -> ProviderMetrics:
    profile = PROVIDER_PROFILES[provider]

    response_time = max(
        MIN_RESPONSE_TIME_MS,
        metrics.response_time + rng.uniform(-RESPONSE_TIME_JITTER_MS, RESPONSE_TIME_JITTER_MS),
    )
    error_rate = _clamp(
        metrics.error_rate * profile.error_decay + rng.uniform(-profile.error_jitter, profile.error_jitter),
        *profile.error_bounds,
    )
    availability = _clamp(
        metrics.availability_percent + rng.uniform(*profile.availability_drift),
        *profile.availability_bounds,
    )
    return metrics.evolve(
        response_time=response_time,
        error_rate=error_rate,
        availability_percent=availability,
    )


def perturb(state: SystemState, rng: RandomSource) -> Dict[ProviderId, ProviderMetrics]:
    """Apply one tick of random drift to every provider's raw metrics."""
    return {
        pid: perturb_provider(pid, metrics, rng)
        for pid, metrics in state.providers.items()
    }
