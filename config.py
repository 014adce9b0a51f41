"""
Service settings read from ROUTER_* environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class Settings:
    tick_interval: float = 1.5  # seconds
    history_limit: int = 20
    event_log_size: int = 200
    seed: Optional[int] = None
    autostart: bool = True
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if self.history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        if self.event_log_size < 1:
            raise ValueError("event_log_size must be at least 1")
        self.log_level = self.log_level.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ if environ is None else environ
        seed = env.get("ROUTER_SEED")
        return cls(
            tick_interval=float(env.get("ROUTER_TICK_INTERVAL", "1.5")),
            history_limit=int(env.get("ROUTER_HISTORY_LIMIT", "20")),
            event_log_size=int(env.get("ROUTER_EVENT_LOG_SIZE", "200")),
            seed=int(seed) if seed not in (None, "") else None,
            autostart=_parse_bool("ROUTER_AUTOSTART", env.get("ROUTER_AUTOSTART", "true")),
            log_level=env.get("ROUTER_LOG_LEVEL", "INFO"),
            host=env.get("ROUTER_HOST", "127.0.0.1"),
            port=int(env.get("ROUTER_PORT", "8000")),
        )
