from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from app import settings
from app.actions import (
    CreateTaskAction,
    SendEmailAction,
    SendNotificationAction,
    SendSmsAction,
    UpdateClaimAction,
    UpdateClaimStatusAction,
    WebhookAction,
)
from app.errors import EngineError, PersistenceError, ProviderError, ValidationError
from app.services import Services
from app.sms import normalize_phone
from app.template_render import render_email_html
from claimflow import TriggerData, due_date, parse_trigger, render

logger = logging.getLogger("claimflow.actions")

WEBHOOK_FILE_LIMIT = 20
SIGNED_URL_TTL_SECONDS = 3600
CLAIM_SNAPSHOT_FIELDS = (
    "id",
    "claim_number",
    "policy_number",
    "status",
    "loss_type",
    "loss_date",
    "loss_description",
    "policyholder_name",
    "policyholder_email",
    "policyholder_phone",
    "policyholder_address",
    "insurance_company",
    "insurance_email",
    "insurance_phone",
    "adjuster_name",
    "adjuster_email",
    "adjuster_phone",
    "claim_amount",
    "created_at",
    "updated_at",
)


@dataclass
class ExecutionContext:
    execution: dict
    claim: dict | None = None
    trigger: TriggerData = field(default_factory=lambda: parse_trigger({}))

    @property
    def execution_id(self) -> str | None:
        return self.execution.get("id")

    @property
    def automation_id(self) -> str | None:
        return self.execution.get("automation_id")

    @property
    def claim_id(self) -> str | None:
        return self.execution.get("claim_id")


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _require_claim(ctx: ExecutionContext) -> dict:
    if not ctx.claim:
        raise ValidationError("Claim not found", path="claim_id")
    return ctx.claim


def _resolve_assignee(action: CreateTaskAction, ctx: ExecutionContext, services: Services) -> str | None:
    if action.assign_to_type == "user":
        return action.assign_to_user_id or None
    if action.assign_to_type == "claim_staff":
        staff_id = services.claims.first_staff_id(ctx.claim_id)
        if not staff_id:
            logger.info("action_task_unassigned reason=no_staff claim_id=%s", ctx.claim_id)
        return staff_id
    if action.assign_to_type == "claim_contractor":
        contractor_id = services.claims.first_contractor_id(ctx.claim_id)
        if not contractor_id:
            logger.info("action_task_unassigned reason=no_contractor claim_id=%s", ctx.claim_id)
        return contractor_id
    return None


def create_task(action: CreateTaskAction, ctx: ExecutionContext, services: Services) -> dict:
    claim = _require_claim(ctx)
    due = None
    if action.due_date_offset is not None:
        due = due_date(action.due_date_offset, action.due_date_type).isoformat()
    task = {
        "claim_id": ctx.claim_id,
        "title": render(action.title, claim, ctx.trigger),
        "description": render(action.description, claim, ctx.trigger) if action.description else None,
        "priority": action.priority,
        "status": "pending",
        "due_date": due,
    }
    assignee = _resolve_assignee(action, ctx, services)
    if assignee:
        task["assigned_to"] = assignee
    created = services.tasks.create(task)
    logger.info("action_task_created task_id=%s claim_id=%s assigned_to=%s", created.get("id"), ctx.claim_id, assignee)
    return created


def send_notification(action: SendNotificationAction, ctx: ExecutionContext, services: Services) -> dict:
    claim = _require_claim(ctx)
    message = render(action.message, claim, ctx.trigger)
    entry = services.activity.append(ctx.claim_id, message, "automation")
    logger.info("action_notification_created update_id=%s claim_id=%s", entry.get("id"), ctx.claim_id)
    return entry


def update_claim(action: UpdateClaimAction, ctx: ExecutionContext, services: Services) -> dict:
    if not action.updates:
        raise ValidationError("No updates specified for update_claim action", path="config.updates")
    updated = services.claims.update(ctx.claim_id, action.updates)
    if updated is None:
        raise PersistenceError("Claim not found", path="claim_id")
    return updated


def update_claim_status(action: UpdateClaimStatusAction, ctx: ExecutionContext, services: Services) -> dict:
    if not action.new_status:
        raise ValidationError("No status specified for update_claim_status action", path="config.new_status")
    if services.claims.update(ctx.claim_id, {"status": action.new_status}) is None:
        raise PersistenceError("Claim not found", path="claim_id")
    logger.info("action_claim_status_updated claim_id=%s new_status=%s", ctx.claim_id, action.new_status)
    return {"new_status": action.new_status, "claim_id": ctx.claim_id}


def _email_recipient(recipient_type: str | None, claim: dict) -> tuple[str | None, str | None]:
    if recipient_type == "policyholder":
        return claim.get("policyholder_email"), claim.get("policyholder_name")
    if recipient_type == "adjuster":
        return claim.get("adjuster_email"), claim.get("adjuster_name")
    if recipient_type == "referrer":
        referrer = claim.get("referrer") or {}
        return referrer.get("email"), referrer.get("name")
    return None, None


def _matches_patterns(file_name: str, patterns: list[str]) -> bool:
    if not patterns:
        return True
    lowered = (file_name or "").lower()
    return any(pattern.lower() in lowered for pattern in patterns)


def _collect_attachments(action: SendEmailAction, ctx: ExecutionContext, services: Services) -> list[dict]:
    if not action.attachment_folders:
        return []
    files = services.files.list_by_folder_names(ctx.claim_id, action.attachment_folders)
    selected = [f for f in files if _matches_patterns(f.get("file_name") or "", action.file_name_patterns)]
    logger.info(
        "action_email_attachments_selected claim_id=%s matched=%s total=%s",
        ctx.claim_id,
        len(selected),
        len(files),
    )
    attachments = []
    for item in selected:
        file_path = item.get("file_path")
        if not isinstance(file_path, str) or not file_path:
            logger.warning("action_email_attachment_skipped file_name=%s error=missing file_path", item.get("file_name"))
            continue
        try:
            data = services.files.download(file_path)
        except Exception as exc:
            logger.warning("action_email_attachment_skipped file_name=%s error=%s", item.get("file_name"), exc)
            continue
        attachments.append({"filename": item.get("file_name"), "content": base64.b64encode(data).decode("ascii")})
    return attachments


def send_email(action: SendEmailAction, ctx: ExecutionContext, services: Services) -> dict:
    claim = _require_claim(ctx)
    recipient_email, recipient_name = _email_recipient(action.recipient_type, claim)
    if not recipient_email:
        raise ValidationError(f"No email found for {action.recipient_type}", path="config.recipient_type")

    subject = render(action.subject, claim, ctx.trigger)
    body = render(action.message, claim, ctx.trigger)
    attachments = _collect_attachments(action, ctx, services)
    message = {
        "from": settings.email_from(),
        "to": [recipient_email],
        "subject": subject,
        "html": render_email_html(body),
    }
    if attachments:
        message["attachments"] = attachments
    sent = services.email_provider().send(message)

    services.messages.log_email(
        {
            "claim_id": ctx.claim_id,
            "recipient_email": recipient_email,
            "recipient_name": recipient_name,
            "recipient_type": action.recipient_type,
            "subject": subject,
            "body": body,
        }
    )
    logger.info(
        "action_email_sent claim_id=%s recipient_type=%s attachments=%s message_id=%s",
        ctx.claim_id,
        action.recipient_type,
        len(attachments),
        sent.get("id"),
    )
    return {"sent_to": recipient_email, "attachments_count": len(attachments), "message_id": sent.get("id")}


def _sms_body(action: SendSmsAction, ctx: ExecutionContext, services: Services, claim: dict) -> str:
    template = action.message
    if action.sms_template_id:
        stored = services.messages.get_sms_template(action.sms_template_id)
        if stored and stored.get("body"):
            template = stored["body"]
    inspection = services.claims.latest_inspection(ctx.claim_id)
    return render(template, claim, ctx.trigger, inspection)


def _send_sms_to(phone: str, body: str, ctx: ExecutionContext, services: Services) -> dict:
    provider = services.sms_provider()
    sender = provider.sender()
    to_number = normalize_phone(phone)
    sent = provider.send(to_number, sender, body)
    services.messages.log_sms(
        {
            "claim_id": ctx.claim_id,
            "to_number": to_number,
            "from_number": sender,
            "message_body": body,
            "direction": "outbound",
            "status": "sent",
            "telnyx_message_id": sent.get("id"),
        }
    )
    logger.info("action_sms_sent claim_id=%s message_id=%s", ctx.claim_id, sent.get("id"))
    return {"sent_to": to_number, "message_id": sent.get("id")}


def send_sms(action: SendSmsAction, ctx: ExecutionContext, services: Services) -> dict:
    claim = _require_claim(ctx)
    body = _sms_body(action, ctx, services, claim)

    if action.recipient_type == "contractors":
        contacts = services.claims.contractor_contacts(ctx.claim_id)
        if not contacts:
            raise ValidationError("No contractors assigned to this claim", path="config.recipient_type")
        results = []
        for contact in contacts:
            if not contact.get("phone"):
                continue
            try:
                results.append(_send_sms_to(contact["phone"], body, ctx, services))
            except (EngineError, httpx.HTTPError) as exc:
                logger.warning("action_sms_contractor_failed contractor_id=%s error=%s", contact.get("id"), exc)
        if not results:
            raise ProviderError("No contractors with phone numbers found")
        return {"sent_count": len(results), "results": results}

    phone = None
    if action.recipient_type == "policyholder":
        phone = claim.get("policyholder_phone")
    elif action.recipient_type == "adjuster":
        phone = claim.get("adjuster_phone")
    if not phone:
        raise ValidationError(f"No phone found for {action.recipient_type}", path="config.recipient_type")
    return _send_sms_to(phone, body, ctx, services)


def _claim_snapshot(claim: dict | None) -> dict | None:
    if not claim:
        return None
    return {key: claim.get(key) for key in CLAIM_SNAPSHOT_FIELDS}


def _webhook_files(ctx: ExecutionContext, services: Services) -> list[dict]:
    files = services.files.list_recent(ctx.claim_id, WEBHOOK_FILE_LIMIT)
    out = []
    for item in files:
        entry = dict(item)
        entry["signed_url"] = services.files.signed_url(item.get("file_path"), SIGNED_URL_TTL_SECONDS)
        out.append(entry)
    return out


def webhook(action: WebhookAction, ctx: ExecutionContext, services: Services) -> dict:
    if not action.webhook_url:
        raise ValidationError("Webhook URL not configured", path="config.webhook_url")
    payload = {
        "execution_id": ctx.execution_id,
        "automation_id": ctx.automation_id,
        "claim_id": ctx.claim_id,
        "trigger_data": ctx.trigger.as_dict(),
        "claim": _claim_snapshot(ctx.claim),
        "timestamp": _now_iso(),
    }
    if action.include_files and ctx.claim:
        files = _webhook_files(ctx, services)
        if files:
            payload["files"] = files

    headers = {"Content-Type": "application/json"}
    headers.update(action.headers)
    logger.info("action_webhook_call execution_id=%s method=%s url=%s", ctx.execution_id, action.method, action.webhook_url)
    with services.http_client() as client:
        resp = client.request(action.method, action.webhook_url, json=payload, headers=headers)
    if not resp.is_success:
        raise ProviderError(
            f"Webhook failed: {resp.status_code} {resp.reason_phrase} - {resp.text}",
            detail={"status": resp.status_code},
        )
    return {"status": resp.status_code, "webhook_url": action.webhook_url, "claim_id": ctx.claim_id}
