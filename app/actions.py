"""Typed action configs.

Each automation carries an ordered list of ``{"type": ..., "config": {...}}``
maps. ``parse_actions`` turns that list into one dataclass per action kind so
handlers read named fields instead of probing an opaque map. Kinds outside the
table become ``UnknownAction`` and fail at dispatch time as a single result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

ASSIGN_TO_TYPES = {"user", "claim_staff", "claim_contractor"}
EMAIL_RECIPIENT_TYPES = {"policyholder", "adjuster", "referrer"}
SMS_RECIPIENT_TYPES = {"policyholder", "adjuster", "contractors"}
TYPE_ALIASES = {"call_webhook": "webhook"}


def _str(value: Any, default: str | None = None) -> str | None:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item)]


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Action:
    kind: ClassVar[str] = ""

    @property
    def action_type(self) -> str:
        return self.kind


@dataclass
class CreateTaskAction(Action):
    kind: ClassVar[str] = "create_task"
    title: str = "Automated Task"
    description: str | None = None
    priority: str = "medium"
    due_date_offset: int | None = None
    due_date_type: str = "calendar"
    assign_to_type: str | None = None
    assign_to_user_id: str | None = None

    @classmethod
    def from_config(cls, config: dict) -> "CreateTaskAction":
        return cls(
            title=_str(config.get("title")) or "Automated Task",
            description=_str(config.get("description")),
            priority=_str(config.get("priority")) or "medium",
            due_date_offset=_int_or_none(config.get("due_date_offset")),
            due_date_type=_str(config.get("due_date_type")) or "calendar",
            assign_to_type=_str(config.get("assign_to_type")),
            assign_to_user_id=_str(config.get("assign_to_user_id")),
        )


@dataclass
class SendNotificationAction(Action):
    kind: ClassVar[str] = "send_notification"
    message: str = "Automated notification"

    @classmethod
    def from_config(cls, config: dict) -> "SendNotificationAction":
        return cls(message=_str(config.get("message")) or "Automated notification")


@dataclass
class UpdateClaimAction(Action):
    kind: ClassVar[str] = "update_claim"
    updates: dict = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict) -> "UpdateClaimAction":
        updates = config.get("updates")
        return cls(updates=dict(updates) if isinstance(updates, dict) else {})


@dataclass
class UpdateClaimStatusAction(Action):
    kind: ClassVar[str] = "update_claim_status"
    new_status: str | None = None

    @classmethod
    def from_config(cls, config: dict) -> "UpdateClaimStatusAction":
        return cls(new_status=_str(config.get("new_status")) or None)


@dataclass
class SendEmailAction(Action):
    kind: ClassVar[str] = "send_email"
    recipient_type: str | None = None
    subject: str = "Claim Update"
    message: str = ""
    attachment_folders: list[str] = field(default_factory=list)
    file_name_patterns: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: dict) -> "SendEmailAction":
        return cls(
            recipient_type=_str(config.get("recipient_type")),
            subject=_str(config.get("subject")) or "Claim Update",
            message=_str(config.get("message"), ""),
            attachment_folders=_str_list(config.get("attachment_folders")),
            file_name_patterns=_str_list(config.get("file_name_patterns")),
        )


@dataclass
class SendSmsAction(Action):
    kind: ClassVar[str] = "send_sms"
    recipient_type: str | None = None
    message: str = ""
    sms_template_id: str | None = None

    @classmethod
    def from_config(cls, config: dict) -> "SendSmsAction":
        return cls(
            recipient_type=_str(config.get("recipient_type")),
            message=_str(config.get("message"), ""),
            sms_template_id=_str(config.get("sms_template_id")) or None,
        )


@dataclass
class WebhookAction(Action):
    kind: ClassVar[str] = "webhook"
    webhook_url: str | None = None
    method: str = "POST"
    headers: dict = field(default_factory=dict)
    include_files: bool = False

    @classmethod
    def from_config(cls, config: dict) -> "WebhookAction":
        headers = config.get("headers")
        return cls(
            webhook_url=_str(config.get("webhook_url") or config.get("url")) or None,
            method=(_str(config.get("method")) or "POST").upper(),
            headers={str(k): str(v) for k, v in headers.items()} if isinstance(headers, dict) else {},
            include_files=bool(config.get("include_files") or config.get("webhook_include_files")),
        )


@dataclass
class UnknownAction(Action):
    type_name: str = ""
    config: dict = field(default_factory=dict)

    @property
    def action_type(self) -> str:
        return self.type_name


ACTION_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (
        CreateTaskAction,
        SendNotificationAction,
        UpdateClaimAction,
        UpdateClaimStatusAction,
        SendEmailAction,
        SendSmsAction,
        WebhookAction,
    )
}


def parse_action(raw: Any) -> Action:
    if not isinstance(raw, dict):
        return UnknownAction(type_name="", config={})
    type_name = _str(raw.get("type"), "")
    config = raw.get("config")
    if not isinstance(config, dict):
        config = {}
    cls = ACTION_TYPES.get(TYPE_ALIASES.get(type_name, type_name))
    if cls is None:
        return UnknownAction(type_name=type_name, config=dict(config))
    return cls.from_config(config)


def parse_actions(raw: Any) -> list[Action]:
    if not isinstance(raw, list):
        return []
    return [parse_action(item) for item in raw]


def validate_actions(raw: Any) -> list[dict]:
    """Load-time issues for an automation's action list, in the error shape used by the API."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        return [{"code": "ACTIONS_INVALID", "message": "actions must be a list", "path": "actions", "detail": None}]
    issues = []
    for idx, item in enumerate(raw):
        path = f"actions[{idx}]"
        if not isinstance(item, dict):
            issues.append({"code": "ACTION_INVALID", "message": "action must be an object", "path": path, "detail": None})
            continue
        type_name = _str(item.get("type"), "")
        if TYPE_ALIASES.get(type_name, type_name) not in ACTION_TYPES:
            issues.append(
                {
                    "code": "ACTION_TYPE_UNKNOWN",
                    "message": f"Unknown action type: {type_name}",
                    "path": f"{path}.type",
                    "detail": {"type": type_name},
                }
            )
        config = item.get("config")
        if config is not None and not isinstance(config, dict):
            issues.append({"code": "ACTION_CONFIG_INVALID", "message": "config must be an object", "path": f"{path}.config", "detail": None})
            continue
        action = parse_action(item)
        if isinstance(action, UpdateClaimStatusAction) and not action.new_status:
            issues.append({"code": "ACTION_CONFIG_INVALID", "message": "new_status is required", "path": f"{path}.config.new_status", "detail": None})
        if isinstance(action, WebhookAction) and not action.webhook_url:
            issues.append({"code": "ACTION_CONFIG_INVALID", "message": "webhook_url is required", "path": f"{path}.config.webhook_url", "detail": None})
        if isinstance(action, CreateTaskAction) and action.assign_to_type and action.assign_to_type not in ASSIGN_TO_TYPES:
            issues.append(
                {
                    "code": "ACTION_CONFIG_INVALID",
                    "message": f"Unknown assign_to_type: {action.assign_to_type}",
                    "path": f"{path}.config.assign_to_type",
                    "detail": None,
                }
            )
        recipient_types = None
        if isinstance(action, SendEmailAction):
            recipient_types = EMAIL_RECIPIENT_TYPES
        elif isinstance(action, SendSmsAction):
            recipient_types = SMS_RECIPIENT_TYPES
        if recipient_types is not None and action.recipient_type not in recipient_types:
            issues.append(
                {
                    "code": "ACTION_CONFIG_INVALID",
                    "message": f"Unknown recipient_type: {action.recipient_type}",
                    "path": f"{path}.config.recipient_type",
                    "detail": {"allowed": sorted(recipient_types)},
                }
            )
    return issues
