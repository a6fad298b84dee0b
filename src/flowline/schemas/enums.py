"""Enum definitions for canonical contracts."""

from __future__ import annotations

from enum import Enum


class TriggerType(str, Enum):
    NEW_CONTACT = "NEW_CONTACT"
    KEYWORD = "KEYWORD"
    NO_REPLY = "NO_REPLY"
    WEBHOOK = "WEBHOOK"
    SCHEDULE = "SCHEDULE"


class NodeType(str, Enum):
    TRIGGER = "trigger"
    MESSAGE = "message"
    DELAY = "delay"
    CONDITION = "condition"
    ASSIGN = "assign"
    WEBHOOK = "webhook"
    COLLECT_INPUT = "collectInput"


class ExecutionStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.IN_PROGRESS


class StepAction(str, Enum):
    CONTINUE = "CONTINUE"
    PAUSE = "PAUSE"


class NodeTransitionState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    PAUSED = "paused"
    FAILED = "failed"


class DelayUnit(str, Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class UnmatchedBranchPolicy(str, Enum):
    FIRST_EDGE = "first_edge"
    FAIL = "fail"


class GatewayProvider(str, Enum):
    WHATSAPP = "whatsapp"
    MOCK = "mock"


LEGACY_TRIGGER_MAP: dict[str, TriggerType] = {
    "new_contact": TriggerType.NEW_CONTACT,
    "new-contact": TriggerType.NEW_CONTACT,
    "keyword": TriggerType.KEYWORD,
    "no_reply": TriggerType.NO_REPLY,
    "no-reply": TriggerType.NO_REPLY,
    "webhook": TriggerType.WEBHOOK,
    "schedule": TriggerType.SCHEDULE,
}

DELAY_UNIT_ALIASES: dict[str, DelayUnit] = {
    "s": DelayUnit.SECONDS,
    "sec": DelayUnit.SECONDS,
    "second": DelayUnit.SECONDS,
    "seconds": DelayUnit.SECONDS,
    "m": DelayUnit.MINUTES,
    "min": DelayUnit.MINUTES,
    "minute": DelayUnit.MINUTES,
    "minutes": DelayUnit.MINUTES,
    "h": DelayUnit.HOURS,
    "hr": DelayUnit.HOURS,
    "hrs": DelayUnit.HOURS,
    "hour": DelayUnit.HOURS,
    "hours": DelayUnit.HOURS,
    "d": DelayUnit.DAYS,
    "day": DelayUnit.DAYS,
    "days": DelayUnit.DAYS,
}

DELAY_UNIT_MILLIS: dict[DelayUnit, int] = {
    DelayUnit.SECONDS: 1_000,
    DelayUnit.MINUTES: 60_000,
    DelayUnit.HOURS: 3_600_000,
    DelayUnit.DAYS: 86_400_000,
}


def normalize_trigger_type(raw_value: str | TriggerType) -> TriggerType:
    """Normalize trigger labels into canonical enum values."""
    if isinstance(raw_value, TriggerType):
        return raw_value
    candidate = raw_value.strip()
    if candidate in TriggerType.__members__:
        return TriggerType[candidate]
    normalized = LEGACY_TRIGGER_MAP.get(candidate.lower())
    if normalized is None:
        raise ValueError(f"Unsupported trigger type: {raw_value}")
    return normalized


def normalize_delay_unit(raw_value: str | DelayUnit) -> DelayUnit:
    """Normalize delay unit labels (min, hrs, days...) into DelayUnit."""
    if isinstance(raw_value, DelayUnit):
        return raw_value
    normalized = DELAY_UNIT_ALIASES.get(raw_value.strip().lower())
    if normalized is None:
        raise ValueError(f"Unsupported delay unit: {raw_value}")
    return normalized
