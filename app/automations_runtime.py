from __future__ import annotations

import logging

from app.automations import (
    AutomationMatchError,
    build_trigger_data,
    event_applies,
    match_event,
    trigger_type_for,
)
from app.errors import ValidationError
from app.services import Services

logger = logging.getLogger("claimflow.automations_runtime")


def handle_event(services: Services, event_type: str, payload: dict) -> list[dict]:
    """Enqueue one pending execution per active automation matching the event."""
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object", path="payload")
    try:
        trigger_type = trigger_type_for(event_type)
    except AutomationMatchError as exc:
        raise ValidationError(str(exc), path="event") from exc
    claim_id = payload.get("claim_id") or None
    logger.info("automation_event_received event=%s claim_id=%s", event_type, claim_id)

    if not event_applies(event_type, payload):
        logger.info("automation_event_ignored event=%s claim_id=%s reason=no_transition", event_type, claim_id)
        return []

    if event_type == "claim.status_changed" and not payload.get("claim_number") and claim_id:
        claim = services.claims.get(claim_id)
        if claim:
            payload = dict(payload, claim_number=claim.get("claim_number"))

    automations = services.automations.list_active([trigger_type])
    if not automations:
        logger.info("automation_none_active event=%s trigger_type=%s", event_type, trigger_type)
        return []
    executions = []
    for automation in automations:
        if not match_event(automation, event_type, payload):
            continue
        execution = services.executions.create(
            {
                "automation_id": automation.get("id"),
                "claim_id": claim_id,
                "trigger_data": build_trigger_data(event_type, payload),
            }
        )
        logger.info(
            "automation_enqueued execution_id=%s automation_id=%s claim_id=%s",
            execution.get("id"),
            automation.get("id"),
            claim_id,
        )
        executions.append(execution)
    return executions
