"""Typed views over an execution's ``trigger_data`` payload."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict


@dataclass
class TriggerData:
    data: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = "generic"

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def as_dict(self) -> dict:
        return copy.deepcopy(self.data)


@dataclass
class GenericTrigger(TriggerData):
    kind: ClassVar[str] = "generic"


@dataclass
class InspectionTrigger(TriggerData):
    kind: ClassVar[str] = "inspection_scheduled"

    # alias -> trigger_data key, shared with the {inspection.*} template tokens
    ALIASES: ClassVar[Dict[str, str]] = {
        "date": "inspection_date",
        "time": "inspection_time",
        "type": "inspection_type",
        "inspector": "inspector_name",
        "notes": "notes",
    }

    def alias(self, name: str) -> Any:
        key = self.ALIASES.get(name)
        return self.data.get(key) if key else None


@dataclass
class StatusChangeTrigger(TriggerData):
    kind: ClassVar[str] = "status_change"


@dataclass
class TaskCompletedTrigger(TriggerData):
    kind: ClassVar[str] = "task_completed"


@dataclass
class ScheduledTrigger(TriggerData):
    kind: ClassVar[str] = "scheduled"


@dataclass
class InactivityTrigger(TriggerData):
    kind: ClassVar[str] = "inactivity"


_BY_TRIGGER_TYPE = {
    "inspection_scheduled": InspectionTrigger,
    "status_change": StatusChangeTrigger,
    "task_completed": TaskCompletedTrigger,
    "scheduled": ScheduledTrigger,
    "inactivity": InactivityTrigger,
}


def _sniff(data: dict) -> type:
    if "inspection_id" in data or "inspection_date" in data:
        return InspectionTrigger
    if "new_status" in data or "old_status" in data:
        return StatusChangeTrigger
    if "task_id" in data:
        return TaskCompletedTrigger
    triggered_by = data.get("triggered_by")
    if triggered_by == "scheduled":
        return ScheduledTrigger
    if triggered_by == "inactivity":
        return InactivityTrigger
    return GenericTrigger


def parse_trigger(data: Any, trigger_type: str | None = None) -> TriggerData:
    """Wrap a raw payload in the variant for ``trigger_type``.

    Unknown or generic trigger types (``webhook``, ``manual``) fall back to
    inspecting the payload keys. Non-dict payloads become an empty
    GenericTrigger.
    """
    if not isinstance(data, dict):
        return GenericTrigger({})
    cls = _BY_TRIGGER_TYPE.get(trigger_type or "") or _sniff(data)
    return cls(copy.deepcopy(data))
