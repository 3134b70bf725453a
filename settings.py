from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional


_ENABLED_ENV = "SIMULATOR_ENABLED"
_INTERVAL_ENV = "SIMULATOR_INTERVAL_SECONDS"
_ALARM_PROBABILITY_ENV = "SIMULATOR_ALARM_PROBABILITY"
_WALK_OVERRIDES_ENV = "SIMULATOR_WALK_OVERRIDES"
_SEND_TIMEOUT_ENV = "SUBSCRIBER_SEND_TIMEOUT_SECONDS"
_STORE_PATH_ENV = "PLANT_STORE_PERSISTENCE_PATH"
_HISTORY_LIMIT_ENV = "PLANT_STORE_HISTORY_LIMIT"
_SEED_ENV = "SEED_DEMO_DATA"
_SEED_PITS_ENV = "SEED_TOTAL_PITS"
_SEED_DEVICES_ENV = "SEED_TOTAL_DEVICES"
_SEED_HISTORY_ENV = "SEED_HISTORY_HOURS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    simulator_enabled: bool
    tick_interval_seconds: float
    alarm_probability: float
    walk_overrides: Dict[str, Any] = field(default_factory=dict)
    subscriber_send_timeout: float = 2.0
    store_persistence_path: Optional[str] = None
    history_limit: int = 500
    seed_demo_data: bool = True
    seed_total_pits: int = 100
    seed_total_devices: int = 50
    seed_history_hours: int = 24
    log_level: str = "INFO"


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_probability(default: float) -> float:
    value = os.getenv(_ALARM_PROBABILITY_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return min(max(parsed, 0.0), 1.0)


def _read_count(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_walk_overrides() -> Dict[str, Any]:
    value = os.getenv(_WALK_OVERRIDES_ENV)
    if value is None or not value.strip():
        return {}
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        simulator_enabled=_read_bool_env(_ENABLED_ENV, True),
        tick_interval_seconds=_read_positive_float(_INTERVAL_ENV, 5.0),
        alarm_probability=_read_probability(0.05),
        walk_overrides=_read_walk_overrides(),
        subscriber_send_timeout=_read_positive_float(_SEND_TIMEOUT_ENV, 2.0),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, None),
        history_limit=_read_count(_HISTORY_LIMIT_ENV, 500),
        seed_demo_data=_read_bool_env(_SEED_ENV, True),
        seed_total_pits=_read_count(_SEED_PITS_ENV, 100, minimum=0),
        seed_total_devices=_read_count(_SEED_DEVICES_ENV, 50, minimum=0),
        seed_history_hours=_read_count(_SEED_HISTORY_ENV, 24, minimum=0),
        log_level=_read_log_level("INFO"),
    )
