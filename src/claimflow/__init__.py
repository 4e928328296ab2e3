"""Claimflow kernel utilities."""

from .business_days import due_date
from .signature import SignatureError, constant_time_equals, sign_body, verify_signature
from .tokens import render
from .trigger_data import (
    GenericTrigger,
    InactivityTrigger,
    InspectionTrigger,
    ScheduledTrigger,
    StatusChangeTrigger,
    TaskCompletedTrigger,
    TriggerData,
    parse_trigger,
)

__all__ = [
    "GenericTrigger",
    "InactivityTrigger",
    "InspectionTrigger",
    "ScheduledTrigger",
    "SignatureError",
    "StatusChangeTrigger",
    "TaskCompletedTrigger",
    "TriggerData",
    "constant_time_equals",
    "due_date",
    "parse_trigger",
    "render",
    "sign_body",
    "verify_signature",
]
