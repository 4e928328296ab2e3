from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import settings

settings.load_env_file(ROOT / "app" / ".env")

from app.actions import parse_actions, validate_actions
from app.dispatcher import dispatch
from app.errors import NotFoundError
from app.handlers import ExecutionContext
from app.services import Services, build_services
from claimflow import parse_trigger

logger = logging.getLogger("claimflow.worker")


def _run_execution(execution: dict, services: Services) -> dict:
    execution_id = execution["id"]
    try:
        claimed = services.executions.claim(execution_id)
    except Exception as exc:
        logger.exception("execution_claim_failed execution_id=%s", execution_id)
        try:
            services.executions.fail(execution_id, str(exc))
        except Exception:
            logger.exception("execution_fail_write_failed execution_id=%s", execution_id)
        return {"id": execution_id, "status": "failed", "error": str(exc)}
    if not claimed:
        logger.info("execution_skipped reason=already_claimed execution_id=%s", execution_id)
        return {"id": execution_id, "status": "skipped"}

    try:
        automation = services.automations.get(execution.get("automation_id"))
        if not automation:
            raise NotFoundError("Automation not found", path="automation_id")
        raw_actions = automation.get("actions") or []
        for issue in validate_actions(raw_actions):
            logger.warning(
                "automation_action_issue automation_id=%s path=%s message=%s",
                automation.get("id"),
                issue.get("path"),
                issue.get("message"),
            )
        claim = services.claims.get(execution.get("claim_id")) if execution.get("claim_id") else None
        if execution.get("claim_id") and not claim:
            logger.info("execution_claim_missing execution_id=%s claim_id=%s", execution_id, execution.get("claim_id"))
        ctx = ExecutionContext(
            execution=execution,
            claim=claim,
            trigger=parse_trigger(execution.get("trigger_data") or {}, automation.get("trigger_type")),
        )
        action_results = dispatch(parse_actions(raw_actions), ctx, services)
        services.executions.complete(execution_id, {"actions": action_results})
    except Exception as exc:
        logger.exception("execution_failed execution_id=%s", execution_id)
        services.executions.fail(execution_id, str(exc))
        return {"id": execution_id, "status": "failed", "error": str(exc)}

    failed = sum(1 for item in action_results if not item.get("success"))
    logger.info(
        "execution_finished execution_id=%s actions=%s failed_actions=%s",
        execution_id,
        len(action_results),
        failed,
    )
    return {"id": execution_id, "status": "success"}


def process_pending(services: Services, limit: int | None = None) -> list[dict]:
    """Run one bounded batch of pending executions, oldest first."""
    batch = services.executions.list_pending(limit or settings.worker_batch_size())
    logger.info("worker_batch_start pending=%s", len(batch))
    results = []
    for execution in batch:
        try:
            results.append(_run_execution(execution, services))
        except Exception as exc:
            # the fail write itself raised
            logger.exception("execution_bookkeeping_failed execution_id=%s", execution.get("id"))
            results.append({"id": execution.get("id"), "status": "failed", "error": str(exc)})
    return results


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    poll_ms = settings.worker_poll_ms()
    batch_size = settings.worker_batch_size()
    services = build_services()

    while True:
        results = process_pending(services, batch_size)
        if not results:
            time.sleep(poll_ms / 1000)


if __name__ == "__main__":
    main()
