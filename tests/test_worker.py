import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

os.environ["USE_DB"] = "0"

from app.services import memory_services
from app.worker import process_pending


class _RacingExecutionStore:
    """Wraps a memory store so another worker grabs the first execution just before us."""

    def __init__(self, inner):
        self._inner = inner
        self.stolen = set()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def claim(self, execution_id):
        if not self.stolen:
            self.stolen.add(execution_id)
            self._inner.claim(execution_id)
        return self._inner.claim(execution_id)


class _BrokenAutomationStore:
    def __init__(self, inner, broken_id):
        self._inner = inner
        self._broken_id = broken_id

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def get(self, automation_id):
        if automation_id == self._broken_id:
            raise RuntimeError("connection reset")
        return self._inner.get(automation_id)


class _FailingClaimStore:
    def __init__(self, inner, broken_id):
        self._inner = inner
        self._broken_id = broken_id

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def claim(self, execution_id):
        if execution_id == self._broken_id:
            raise RuntimeError("connection reset during claim")
        return self._inner.claim(execution_id)


class TestWorker(unittest.TestCase):
    def setUp(self):
        self.services = memory_services()
        self.claim = self.services.claims.create({"claim_number": "CLM-1", "policyholder_name": "Pat"})

    def _automation(self, actions, trigger_type="webhook"):
        return self.services.automations.create({"name": "A", "trigger_type": trigger_type, "actions": actions})

    def _execution(self, automation, claim_id=None, trigger_data=None):
        return self.services.executions.create(
            {"automation_id": automation["id"], "claim_id": claim_id or self.claim["id"], "trigger_data": trigger_data or {}}
        )

    def test_success_records_action_results_in_order(self):
        automation = self._automation(
            [
                {"type": "send_notification", "config": {"message": "first {trigger.source}"}},
                {"type": "update_claim_status", "config": {"new_status": "review"}},
            ]
        )
        execution = self._execution(automation, trigger_data={"source": "crm"})
        results = process_pending(self.services, 10)
        self.assertEqual(results, [{"id": execution["id"], "status": "success"}])
        stored = self.services.executions.get(execution["id"])
        self.assertEqual(stored["status"], "success")
        self.assertIsNotNone(stored["completed_at"])
        self.assertEqual([a["action_type"] for a in stored["result"]["actions"]], ["send_notification", "update_claim_status"])
        self.assertEqual(self.services.activity.list(self.claim["id"])[0]["content"], "first crm")
        self.assertEqual(self.services.claims.get(self.claim["id"])["status"], "review")

    def test_all_actions_failing_is_still_success(self):
        automation = self._automation([{"type": "send_email", "config": {"recipient_type": "adjuster"}}])
        execution = self._execution(automation)
        process_pending(self.services, 10)
        stored = self.services.executions.get(execution["id"])
        self.assertEqual(stored["status"], "success")
        self.assertEqual(stored["result"]["actions"], [{"action_type": "send_email", "success": False, "error": "No email found for adjuster"}])

    def test_missing_claim_is_not_fatal(self):
        automation = self._automation(
            [
                {"type": "send_notification", "config": {}},
                {"type": "webhook", "config": {}},
            ]
        )
        execution = self._execution(automation, claim_id="missing-claim")
        process_pending(self.services, 10)
        stored = self.services.executions.get(execution["id"])
        self.assertEqual(stored["status"], "success")
        self.assertEqual([a["success"] for a in stored["result"]["actions"]], [False, False])

    def test_missing_automation_fails_execution(self):
        automation = self._automation([])
        execution = self._execution(automation)
        self.services.automations.delete(automation["id"])
        results = process_pending(self.services, 10)
        self.assertEqual(results[0]["status"], "failed")
        stored = self.services.executions.get(execution["id"])
        self.assertEqual(stored["status"], "failed")
        self.assertEqual(stored["error_message"], "Automation not found")
        self.assertIsNone(stored["result"])

    def test_bookkeeping_failure_does_not_stop_batch(self):
        broken = self._automation([{"type": "send_notification", "config": {}}])
        healthy = self._automation([{"type": "send_notification", "config": {"message": "ok"}}])
        first = self._execution(broken)
        second = self._execution(healthy)
        self.services.automations = _BrokenAutomationStore(self.services.automations, broken["id"])
        results = process_pending(self.services, 10)
        self.assertEqual([r["status"] for r in results], ["failed", "success"])
        self.assertEqual(self.services.executions.get(first["id"])["error_message"], "connection reset")
        self.assertEqual(self.services.executions.get(second["id"])["status"], "success")

    def test_claim_write_failure_marks_execution_failed(self):
        automation = self._automation([{"type": "send_notification", "config": {}}])
        first = self._execution(automation)
        second = self._execution(automation)
        self.services.executions = _FailingClaimStore(self.services.executions, first["id"])
        results = process_pending(self.services, 10)
        self.assertEqual([r["status"] for r in results], ["failed", "success"])
        stored = self.services.executions.get(first["id"])
        self.assertEqual(stored["status"], "failed")
        self.assertEqual(stored["error_message"], "connection reset during claim")
        self.assertIsNotNone(stored["completed_at"])
        self.assertEqual(self.services.executions.get(second["id"])["status"], "success")

    def test_batch_is_bounded_and_oldest_first(self):
        automation = self._automation([])
        executions = [self._execution(automation) for _ in range(3)]
        results = process_pending(self.services, 2)
        self.assertEqual([r["id"] for r in results], [executions[0]["id"], executions[1]["id"]])
        self.assertEqual(self.services.executions.get(executions[2]["id"])["status"], "pending")

    def test_already_claimed_execution_is_skipped(self):
        automation = self._automation([{"type": "send_notification", "config": {"message": "once"}}])
        execution = self._execution(automation)
        self.services.executions = _RacingExecutionStore(self.services.executions)
        results = process_pending(self.services, 10)
        self.assertEqual(results, [{"id": execution["id"], "status": "skipped"}])
        self.assertEqual(self.services.executions.get(execution["id"])["status"], "running")
        self.assertEqual(self.services.activity.list(self.claim["id"]), [])

    def test_terminal_states_are_not_rewritten(self):
        automation = self._automation([])
        execution = self._execution(automation)
        process_pending(self.services, 10)
        store = self.services.executions
        self.assertFalse(store.claim(execution["id"]))
        self.assertFalse(store.fail(execution["id"], "late"))
        self.assertFalse(store.complete(execution["id"], {"actions": []}))
        self.assertEqual(store.get(execution["id"])["status"], "success")
        self.assertEqual(process_pending(self.services, 10), [])


if __name__ == "__main__":
    unittest.main()
