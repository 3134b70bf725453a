from __future__ import annotations

import random
import re
from datetime import datetime, timezone
from typing import List

from models.records import AlarmCategory, AlarmEvent, AlarmLevel, AlarmStatus
from services.alarms import ALARM_MESSAGES, AlarmEmitter


class ListSink:
    def __init__(self) -> None:
        self.saved: List[AlarmEvent] = []

    def save_alarm(self, alarm: AlarmEvent) -> AlarmEvent:
        stored = alarm.model_copy(update={"id": len(self.saved) + 1})
        self.saved.append(stored)
        return stored


def test_emission_rate_matches_probability() -> None:
    sink = ListSink()
    emitter = AlarmEmitter(sink, random.Random(2024), probability=0.05)
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    emitted = sum(1 for _ in range(100_000) if emitter.maybe_emit(now) is not None)

    assert 4_500 <= emitted <= 5_500
    assert len(sink.saved) == emitted


def test_emitted_alarm_is_persisted_and_well_formed() -> None:
    sink = ListSink()
    emitter = AlarmEmitter(sink, random.Random(1), probability=1.0)
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    alarm = emitter.maybe_emit(now)

    assert alarm is not None
    assert alarm.id == 1
    assert sink.saved == [alarm]
    assert alarm.status is AlarmStatus.active
    assert alarm.created_at == now
    assert alarm.level in set(AlarmLevel)
    assert alarm.message == ALARM_MESSAGES[alarm.category]


def test_source_matches_category() -> None:
    emitter = AlarmEmitter(ListSink(), random.Random(5), probability=1.0)
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    for _ in range(200):
        alarm = emitter.build_alarm(now)
        if alarm.category in (AlarmCategory.device, AlarmCategory.system):
            assert re.fullmatch(r"device-\d{3}", alarm.source)
        else:
            assert re.fullmatch(r"pit-[A-D]-\d{3}", alarm.source)


def test_zero_probability_never_emits() -> None:
    sink = ListSink()
    emitter = AlarmEmitter(sink, random.Random(9), probability=0.0)

    assert all(emitter.maybe_emit() is None for _ in range(1000))
    assert sink.saved == []
