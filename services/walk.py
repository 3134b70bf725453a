"""Bounded random walk used for every simulated metric."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from models.records import EntityKind, Reading

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...


class WalkConstants(BaseModel):
    """Step amplitude, bounds and first-reading seed for one metric."""

    model_config = ConfigDict(frozen=True)

    amplitude: float
    min_value: float
    max_value: float
    seed: float

    @model_validator(mode="after")
    def _check_bounds(self) -> "WalkConstants":
        if self.min_value > self.max_value:
            raise ValueError(
                f"min_value {self.min_value} is greater than max_value {self.max_value}"
            )
        if self.amplitude < 0:
            raise ValueError("amplitude must not be negative")
        return self


def next_value(
    previous: Optional[float],
    amplitude: float,
    min_value: float,
    max_value: float,
    seed: float,
    rng: RandomSource,
) -> float:
    """Nudge ``previous`` by a uniform offset in ``[-amplitude/2, amplitude/2]``.

    Returns ``seed`` untouched when there is no previous value. Otherwise the
    result is clamped to ``[min_value, max_value]`` and rounded to 2 decimals.
    """
    if previous is None:
        return seed
    half = amplitude / 2.0
    candidate = previous + rng.uniform(-half, half)
    clamped = min(max(candidate, min_value), max_value)
    return round(clamped, 2)


PIT_WALK: Dict[str, WalkConstants] = {
    "temperature": WalkConstants(amplitude=1.0, min_value=15.0, max_value=45.0, seed=25.0),
    "humidity": WalkConstants(amplitude=2.0, min_value=40.0, max_value=95.0, seed=70.0),
    "ph_value": WalkConstants(amplitude=0.1, min_value=3.0, max_value=6.0, seed=4.5),
    "acidity": WalkConstants(amplitude=0.05, min_value=0.2, max_value=2.0, seed=1.0),
    "moisture": WalkConstants(amplitude=1.0, min_value=40.0, max_value=70.0, seed=55.0),
    "alcohol": WalkConstants(amplitude=0.2, min_value=0.0, max_value=20.0, seed=5.0),
}

DEVICE_WALK: Dict[str, WalkConstants] = {
    "power": WalkConstants(amplitude=0.5, min_value=0.0, max_value=100.0, seed=15.0),
    "speed": WalkConstants(amplitude=10.0, min_value=0.0, max_value=3000.0, seed=1400.0),
    "vibration": WalkConstants(amplitude=1.0, min_value=0.0, max_value=10.0, seed=1.0),
    "temperature": WalkConstants(amplitude=1.0, min_value=20.0, max_value=100.0, seed=45.0),
    "current": WalkConstants(amplitude=0.2, min_value=0.0, max_value=50.0, seed=5.0),
}


class WalkProfile(BaseModel):
    """Per-kind tables of walk constants."""

    model_config = ConfigDict(frozen=True)

    pit: Dict[str, WalkConstants] = PIT_WALK
    device: Dict[str, WalkConstants] = DEVICE_WALK

    def for_kind(self, kind: EntityKind) -> Dict[str, WalkConstants]:
        return self.pit if kind is EntityKind.pit else self.device

    def with_overrides(self, overrides: Mapping[str, Any]) -> "WalkProfile":
        """Return a profile with partial per-metric overrides applied.

        ``overrides`` is shaped like ``{"pit": {"temperature": {"amplitude": 3}}}``.
        Unknown kinds or metrics raise ``ValueError``.
        """
        tables: Dict[str, Dict[str, WalkConstants]] = {
            "pit": dict(self.pit),
            "device": dict(self.device),
        }
        for kind_name, metrics in overrides.items():
            if kind_name not in tables:
                raise ValueError(f"Unknown entity kind {kind_name!r} in walk overrides.")
            if not isinstance(metrics, Mapping):
                raise ValueError(f"Walk overrides for {kind_name!r} must be an object.")
            table = tables[kind_name]
            for metric, fields in metrics.items():
                if metric not in table:
                    raise ValueError(f"Unknown {kind_name} metric {metric!r} in walk overrides.")
                merged = {**table[metric].model_dump(), **dict(fields)}
                table[metric] = WalkConstants.model_validate(merged)
        return WalkProfile(pit=tables["pit"], device=tables["device"])


def build_profile(overrides: Optional[Mapping[str, Any]] = None) -> WalkProfile:
    """Build the default profile, ignoring overrides that fail validation."""
    profile = WalkProfile()
    if not overrides:
        return profile
    try:
        return profile.with_overrides(overrides)
    except (ValueError, TypeError, ValidationError) as exc:
        logger.warning(
            "Ignoring invalid walk overrides; using defaults.",
            extra={"reason": str(exc).splitlines()[0]},
        )
        return profile


def next_reading(
    entity_id: int,
    kind: EntityKind,
    previous: Optional[Reading],
    profile: WalkProfile,
    rng: RandomSource,
    recorded_at: datetime,
) -> Reading:
    """Walk every metric of ``kind`` one step from ``previous``."""
    metrics: Dict[str, float] = {}
    for name, constants in profile.for_kind(kind).items():
        last = previous.metrics.get(name) if previous is not None else None
        metrics[name] = next_value(
            last,
            constants.amplitude,
            constants.min_value,
            constants.max_value,
            constants.seed,
            rng,
        )
    return Reading(entity_id=entity_id, kind=kind, metrics=metrics, recorded_at=recorded_at)
