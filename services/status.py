"""Threshold rules mapping fresh readings to an entity status."""

from __future__ import annotations

from typing import Mapping, Union

from models.records import Device, DeviceStatus, EntityKind, EntityStatus, PitStatus

PIT_ALARM_TEMPERATURE = 40.0
PIT_WARNING_TEMPERATURE = 35.0

DEVICE_FAULT_VIBRATION = 8.0
DEVICE_FAULT_TEMPERATURE = 80.0
DEVICE_WARNING_VIBRATION = 5.0
DEVICE_WARNING_TEMPERATURE = 65.0

SIMULATED_DEVICE_STATUSES = frozenset({DeviceStatus.running, DeviceStatus.warning})


def pit_status(metrics: Mapping[str, float]) -> PitStatus:
    temperature = metrics["temperature"]
    if temperature > PIT_ALARM_TEMPERATURE:
        return PitStatus.alarm
    if temperature > PIT_WARNING_TEMPERATURE:
        return PitStatus.warning
    return PitStatus.normal


def device_status(metrics: Mapping[str, float]) -> DeviceStatus:
    vibration = metrics["vibration"]
    temperature = metrics["temperature"]
    if vibration > DEVICE_FAULT_VIBRATION or temperature > DEVICE_FAULT_TEMPERATURE:
        return DeviceStatus.fault
    if vibration > DEVICE_WARNING_VIBRATION or temperature > DEVICE_WARNING_TEMPERATURE:
        return DeviceStatus.warning
    return DeviceStatus.running


def next_status(
    kind: EntityKind,
    metrics: Mapping[str, float],
    previous_status: Union[EntityStatus, str],
) -> EntityStatus:
    """Return the status implied by ``metrics`` for an entity of ``kind``.

    Only the metrics gate the result; ``previous_status`` is accepted so the
    caller can compare with :func:`status_changed`. Devices are expected to be
    filtered through :func:`is_simulated` first.
    """
    if kind is EntityKind.pit:
        return pit_status(metrics)
    return device_status(metrics)


def status_changed(previous_status: Union[EntityStatus, str], new_status: EntityStatus) -> bool:
    return str(getattr(previous_status, "value", previous_status)) != new_status.value


def is_simulated(device: Device) -> bool:
    """Stopped and maintenance devices produce no readings."""
    return device.status in SIMULATED_DEVICE_STATUSES
