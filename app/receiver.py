from __future__ import annotations

import json
import logging

from app import settings
from app.errors import AuthenticationError, NotFoundError, ValidationError
from app.services import Services
from claimflow import SignatureError, verify_signature

logger = logging.getLogger("claimflow.receiver")


def authenticate(raw_body: bytes, signature: str | None) -> None:
    """Check the HMAC signature header against the configured shared secret."""
    secret = settings.webhook_secret()
    if not secret:
        logger.warning("webhook_insecure_mode reason=no_secret_configured")
        return
    try:
        ok = verify_signature(secret, raw_body, signature)
    except SignatureError as exc:
        logger.warning("webhook_signature_rejected reason=%s", exc)
        raise AuthenticationError(str(exc)) from exc
    if not ok:
        logger.warning("webhook_signature_rejected reason=mismatch")
        raise AuthenticationError("Invalid signature")


def parse_body(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body or b"{}")
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    return payload


def receive_webhook(raw_body: bytes, signature: str | None, services: Services) -> dict:
    authenticate(raw_body, signature)
    payload = parse_body(raw_body)

    automation_id = payload.get("automation_id")
    if not automation_id or not isinstance(automation_id, str):
        raise ValidationError("automation_id is required", path="automation_id")

    automation = services.automations.get_active(automation_id, "webhook")
    if not automation:
        raise NotFoundError("Automation not found or not active", path="automation_id")

    trigger_data = payload.get("trigger_data")
    if not isinstance(trigger_data, dict):
        trigger_data = {}
    execution = services.executions.create(
        {
            "automation_id": automation_id,
            "claim_id": payload.get("claim_id") or None,
            "trigger_data": trigger_data,
        }
    )
    logger.info(
        "webhook_execution_created execution_id=%s automation_id=%s claim_id=%s",
        execution.get("id"),
        automation_id,
        execution.get("claim_id"),
    )
    return execution
