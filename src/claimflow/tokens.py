"""``{scope.field}`` token substitution for automation templates."""

from __future__ import annotations

import re
from typing import Any

from .trigger_data import InspectionTrigger, TriggerData, parse_trigger

_TOKEN_RE = re.compile(r"\{(\w+)\.([\w.]*)\}")


def _get_path(payload: Any, path: str) -> Any:
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return ""
    return str(value)


def _inspection_value(name: str, trigger: TriggerData, inspection: dict | None) -> Any:
    key = InspectionTrigger.ALIASES.get(name)
    if key is None:
        return None
    if isinstance(trigger, InspectionTrigger):
        value = trigger.alias(name)
    else:
        value = trigger.get(key)
    if value in (None, "") and isinstance(inspection, dict):
        value = inspection.get(key)
    return value


def _resolve(scope: str, field: str, claim: dict | None, trigger: TriggerData, inspection: dict | None) -> str:
    if not field:
        return ""
    if scope == "claim":
        return _stringify(_get_path(claim, field)) if isinstance(claim, dict) else ""
    if scope == "trigger":
        return _stringify(_get_path(trigger.data, field))
    if scope == "inspection":
        return _stringify(_inspection_value(field, trigger, inspection))
    return ""


def render(template: Any, claim: dict | None, trigger_data: Any = None, inspection: dict | None = None) -> str:
    """Substitute ``{claim.*}``, ``{trigger.*}`` and ``{inspection.*}`` tokens.

    Missing fields, unknown scopes and a missing claim all render as an empty
    string. ``{inspection.date|time|type|inspector|notes}`` read the same
    ``trigger_data`` keys as ``{trigger.inspection_date}`` etc., falling back
    to ``inspection`` (a stored inspection row) when the trigger has no value.
    Never raises.
    """
    if template is None:
        return ""
    text = template if isinstance(template, str) else str(template)
    trigger = trigger_data if isinstance(trigger_data, TriggerData) else parse_trigger(trigger_data)

    def _sub(match: re.Match) -> str:
        try:
            return _resolve(match.group(1), match.group(2), claim, trigger, inspection)
        except Exception:
            return ""

    return _TOKEN_RE.sub(_sub, text)
