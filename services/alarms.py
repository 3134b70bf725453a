"""Probabilistic alarm synthesis for the demo plant."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Sequence

from models.records import AlarmCategory, AlarmEvent, AlarmLevel

logger = logging.getLogger(__name__)

ALARM_LEVELS: Sequence[AlarmLevel] = tuple(AlarmLevel)
ALARM_CATEGORIES: Sequence[AlarmCategory] = tuple(AlarmCategory)

ALARM_MESSAGES: Dict[AlarmCategory, str] = {
    AlarmCategory.temperature: "Temperature above upper threshold",
    AlarmCategory.humidity: "Abnormal humidity fluctuation",
    AlarmCategory.ph: "pH value outside normal range",
    AlarmCategory.device: "Excessive device vibration",
    AlarmCategory.system: "System communication delay",
}

_PIT_ZONES = ("A", "B", "C", "D")
_PIT_CATEGORIES = frozenset({AlarmCategory.temperature, AlarmCategory.humidity, AlarmCategory.ph})


class AlarmRandomSource(Protocol):
    def random(self) -> float: ...

    def choice(self, seq: Sequence): ...

    def randint(self, a: int, b: int) -> int: ...


class AlarmSink(Protocol):
    def save_alarm(self, alarm: AlarmEvent) -> AlarmEvent: ...


class AlarmEmitter:
    """Raise at most one synthetic alarm per call, with a fixed probability."""

    def __init__(
        self,
        store: AlarmSink,
        rng: AlarmRandomSource,
        probability: float = 0.05,
    ) -> None:
        self.store = store
        self.rng = rng
        self.probability = probability

    def maybe_emit(self, now: Optional[datetime] = None) -> Optional[AlarmEvent]:
        if self.rng.random() >= self.probability:
            return None
        alarm = self.build_alarm(now or datetime.now(timezone.utc))
        stored = self.store.save_alarm(alarm)
        logger.info(
            "Synthetic alarm raised.",
            extra={"alarm_id": stored.id, "alarm_level": stored.level.value},
        )
        return stored

    def build_alarm(self, now: datetime) -> AlarmEvent:
        level = self.rng.choice(ALARM_LEVELS)
        category = self.rng.choice(ALARM_CATEGORIES)
        return AlarmEvent(
            level=level,
            category=category,
            source=self._source_for(category),
            message=ALARM_MESSAGES[category],
            created_at=now,
        )

    def _source_for(self, category: AlarmCategory) -> str:
        if category in _PIT_CATEGORIES:
            zone = self.rng.choice(_PIT_ZONES)
            return f"pit-{zone}-{self.rng.randint(1, 25):03d}"
        return f"device-{self.rng.randint(1, 50):03d}"
