from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .history import DEFAULT_LIMIT


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_flag(*names: str) -> bool:
    for name in names:
        raw = os.getenv(name)
        if raw is not None:
            return raw.lower() in ("1", "true", "yes", "on")
    return False


@dataclass(frozen=True)
class Settings:
    think_min_ms: int = 700
    think_max_ms: int = 1700
    history_limit: int = DEFAULT_LIMIT
    log_level: str = "WARNING"
    port: int = 5000
    debug: bool = False

    @property
    def think_range(self) -> tuple:
        lo = max(0, self.think_min_ms)
        hi = max(lo, self.think_max_ms)
        return (lo / 1000.0, hi / 1000.0)


def load_settings() -> Settings:
    """Reads settings from the environment."""
    return Settings(
        think_min_ms=_env_int("PUNTO_THINK_MIN_MS", 700),
        think_max_ms=_env_int("PUNTO_THINK_MAX_MS", 1700),
        history_limit=_env_int("PUNTO_HISTORY_LIMIT", DEFAULT_LIMIT),
        log_level=os.getenv("PUNTO_LOG_LEVEL", "WARNING").upper(),
        port=_env_int("PORT", 5000),
        debug=_env_flag("FLASK_DEBUG", "DEBUG"),
    )


def configure_logging(level: Optional[str] = None) -> None:
    name = (level or load_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
