from __future__ import annotations

import logging
from typing import Callable

from app import handlers
from app.actions import (
    Action,
    CreateTaskAction,
    SendEmailAction,
    SendNotificationAction,
    SendSmsAction,
    UpdateClaimAction,
    UpdateClaimStatusAction,
    WebhookAction,
)
from app.errors import ValidationError
from app.handlers import ExecutionContext
from app.services import Services

logger = logging.getLogger("claimflow.dispatcher")

HANDLERS: dict[type, Callable[[Action, ExecutionContext, Services], dict]] = {
    CreateTaskAction: handlers.create_task,
    SendNotificationAction: handlers.send_notification,
    UpdateClaimAction: handlers.update_claim,
    UpdateClaimStatusAction: handlers.update_claim_status,
    SendEmailAction: handlers.send_email,
    SendSmsAction: handlers.send_sms,
    WebhookAction: handlers.webhook,
}


def run_action(action: Action, ctx: ExecutionContext, services: Services) -> dict:
    handler = HANDLERS.get(type(action))
    if handler is None:
        raise ValidationError(f"Unknown action type: {action.action_type}", path="type")
    return handler(action, ctx, services)


def dispatch(actions: list[Action], ctx: ExecutionContext, services: Services) -> list[dict]:
    """Run ``actions`` in order; each failure becomes a result and the loop moves on."""
    results = []
    for idx, action in enumerate(actions):
        try:
            output = run_action(action, ctx, services)
            results.append({"action_type": action.action_type, "success": True, "result": output})
        except Exception as exc:
            logger.warning(
                "action_failed execution_id=%s index=%s action_type=%s error=%s",
                ctx.execution_id,
                idx,
                action.action_type,
                exc,
            )
            results.append({"action_type": action.action_type, "success": False, "error": str(exc)})
    return results
