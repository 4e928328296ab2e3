from __future__ import annotations

from typing import Any

EVENT_TRIGGER_TYPES = {
    "claim.status_changed": "status_change",
    "task.completed": "task_completed",
    "inspection.scheduled": "inspection_scheduled",
}

_TRIGGER_DATA_KEYS = {
    "claim.status_changed": ("old_status", "new_status", "claim_number"),
    "task.completed": ("task_id", "task_title", "task_description", "completed_at"),
    "inspection.scheduled": (
        "inspection_id",
        "inspection_date",
        "inspection_time",
        "inspection_type",
        "inspector_name",
        "notes",
    ),
}


class AutomationMatchError(RuntimeError):
    pass


def trigger_type_for(event_type: str) -> str:
    trigger_type = EVENT_TRIGGER_TYPES.get(event_type)
    if trigger_type is None:
        raise AutomationMatchError(f"Unknown event type: {event_type}")
    return trigger_type


def event_applies(event_type: str, payload: dict) -> bool:
    """Whether the event describes a real transition at all, before any automation is consulted."""
    if event_type == "claim.status_changed":
        return payload.get("old_status") != payload.get("new_status")
    if event_type == "task.completed":
        return payload.get("old_status") != "completed"
    return True


def build_trigger_data(event_type: str, payload: dict) -> dict:
    keys = _TRIGGER_DATA_KEYS.get(event_type) or ()
    return {key: payload.get(key) for key in keys}


def _config(automation: dict) -> dict:
    config = automation.get("trigger_config")
    return config if isinstance(config, dict) else {}


def _blank(value: Any) -> bool:
    return value is None or value == ""


def match_event(automation: dict, event_type: str, payload: dict) -> bool:
    if not isinstance(automation, dict) or not automation.get("is_active"):
        return False
    if automation.get("trigger_type") != EVENT_TRIGGER_TYPES.get(event_type):
        return False
    config = _config(automation)
    if event_type == "claim.status_changed":
        wanted = config.get("status")
        return _blank(wanted) or wanted == payload.get("new_status")
    if event_type == "task.completed":
        pattern = config.get("task_title_pattern")
        if _blank(pattern):
            return True
        return str(pattern).lower() in str(payload.get("task_title") or "").lower()
    return True
