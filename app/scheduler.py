"""Time-based automation sweeps.

``scheduled`` automations fire once per claim a fixed number of days after
the claim was opened. ``inactivity`` automations fire for open claims with no
activity (claim edits, activity-log entries, file uploads, task updates) for
``inactivity_days``; they fire again at most once per inactivity period.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from app import settings
from app.services import Services
from app.worker import process_pending

logger = logging.getLogger("claimflow.scheduler")

DEFAULT_DAYS_AFTER_CREATION = 7
DEFAULT_INACTIVITY_DAYS = 14


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_ts(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _positive_int(value, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _trigger_config(automation: dict) -> dict:
    config = automation.get("trigger_config")
    return config if isinstance(config, dict) else {}


def _last_activity(services: Services, claim: dict) -> datetime | None:
    claim_id = claim["id"]
    candidates = [
        _parse_ts(claim.get("updated_at")),
        _parse_ts(services.activity.latest_at(claim_id)),
        _parse_ts(services.files.latest_upload_at(claim_id)),
        _parse_ts(services.tasks.latest_update_at(claim_id)),
    ]
    present = [c for c in candidates if c is not None]
    return max(present) if present else None


def process_scheduled(services: Services, automation: dict, now: datetime) -> dict:
    config = _trigger_config(automation)
    created = []
    if config.get("schedule_type") == "days_after":
        days = _positive_int(config.get("days_after_creation"), DEFAULT_DAYS_AFTER_CREATION)
        target_day = (now - timedelta(days=days)).date()
        for claim in services.claims.list_open_created_on(target_day):
            if services.executions.exists(automation["id"], claim["id"]):
                continue
            execution = services.executions.create(
                {
                    "automation_id": automation["id"],
                    "claim_id": claim["id"],
                    "trigger_data": {
                        "triggered_by": "scheduled",
                        "days_after_creation": days,
                        "claim_number": claim.get("claim_number"),
                    },
                }
            )
            created.append(execution["id"])
            logger.info("scheduled_execution_created execution_id=%s claim_id=%s", execution["id"], claim["id"])
    return {"created": len(created), "execution_ids": created}


def process_inactivity(services: Services, automation: dict, now: datetime) -> dict:
    config = _trigger_config(automation)
    days = _positive_int(config.get("inactivity_days"), DEFAULT_INACTIVITY_DAYS)
    cutoff = now - timedelta(days=days)
    period_start = _iso(cutoff - timedelta(days=1))
    created = []
    for claim in services.claims.list_open():
        last_activity = _last_activity(services, claim)
        if last_activity is None or last_activity >= cutoff:
            continue
        if services.executions.exists(automation["id"], claim["id"], since=period_start):
            continue
        execution = services.executions.create(
            {
                "automation_id": automation["id"],
                "claim_id": claim["id"],
                "trigger_data": {
                    "triggered_by": "inactivity",
                    "inactivity_days": days,
                    "last_activity": _iso(last_activity),
                    "claim_number": claim.get("claim_number"),
                },
            }
        )
        created.append(execution["id"])
        logger.info(
            "inactivity_execution_created execution_id=%s claim_id=%s last_activity=%s",
            execution["id"],
            claim["id"],
            _iso(last_activity),
        )
    return {"created": len(created), "execution_ids": created}


def check_scheduled(services: Services, now: datetime | None = None, run_worker: bool = True) -> dict:
    now = now or datetime.now(timezone.utc)
    automations = services.automations.list_active(["scheduled", "inactivity"])
    logger.info("scheduler_check_start automations=%s", len(automations))
    results = []
    for automation in automations:
        try:
            if automation.get("trigger_type") == "scheduled":
                outcome = process_scheduled(services, automation, now)
            else:
                outcome = process_inactivity(services, automation, now)
            results.append({"automation_id": automation.get("id"), "type": automation.get("trigger_type"), **outcome})
        except Exception as exc:
            logger.exception("scheduler_automation_failed automation_id=%s", automation.get("id"))
            results.append({"automation_id": automation.get("id"), "error": str(exc)})

    executed = None
    if run_worker:
        batch = process_pending(services, settings.worker_batch_size())
        executed = {"processed": len(batch), "results": batch}
    return {"checked": len(results), "results": results, "executed": executed}
