import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.automations import build_trigger_data, match_event
from app.automations_runtime import handle_event
from app.errors import ValidationError
from app.services import memory_services


class TestAutomationMatching(unittest.TestCase):
    def test_status_filter(self):
        automation = {"is_active": True, "trigger_type": "status_change", "trigger_config": {"status": "closed"}}
        self.assertTrue(match_event(automation, "claim.status_changed", {"new_status": "closed"}))
        self.assertFalse(match_event(automation, "claim.status_changed", {"new_status": "open"}))
        automation["trigger_config"] = {}
        self.assertTrue(match_event(automation, "claim.status_changed", {"new_status": "open"}))

    def test_task_title_pattern_is_case_insensitive_substring(self):
        automation = {"is_active": True, "trigger_type": "task_completed", "trigger_config": {"task_title_pattern": "Inspect"}}
        self.assertTrue(match_event(automation, "task.completed", {"task_title": "Schedule roof inspection"}))
        self.assertFalse(match_event(automation, "task.completed", {"task_title": "Call adjuster"}))

    def test_wrong_trigger_type_or_inactive(self):
        automation = {"is_active": True, "trigger_type": "webhook"}
        self.assertFalse(match_event(automation, "inspection.scheduled", {}))
        automation = {"is_active": False, "trigger_type": "inspection_scheduled"}
        self.assertFalse(match_event(automation, "inspection.scheduled", {}))

    def test_trigger_data_keys(self):
        data = build_trigger_data("inspection.scheduled", {"inspection_id": "i1", "inspection_date": "2026-11-02", "claim_id": "c1"})
        self.assertEqual(set(data), {"inspection_id", "inspection_date", "inspection_time", "inspection_type", "inspector_name", "notes"})
        self.assertEqual(data["inspection_id"], "i1")


class TestAutomationRuntime(unittest.TestCase):
    def setUp(self):
        self.services = memory_services()
        self.claim = self.services.claims.create({"claim_number": "CLM-9"})

    def test_status_change_enqueues_once_per_matching_automation(self):
        closed = self.services.automations.create({"name": "Closed", "trigger_type": "status_change", "trigger_config": {"status": "closed"}})
        any_change = self.services.automations.create({"name": "Any", "trigger_type": "status_change"})
        self.services.automations.create({"name": "Approved", "trigger_type": "status_change", "trigger_config": {"status": "approved"}})
        executions = handle_event(
            self.services,
            "claim.status_changed",
            {"claim_id": self.claim["id"], "old_status": "open", "new_status": "closed"},
        )
        self.assertEqual({e["automation_id"] for e in executions}, {closed["id"], any_change["id"]})
        for execution in executions:
            self.assertEqual(execution["status"], "pending")
            self.assertEqual(
                execution["trigger_data"],
                {"old_status": "open", "new_status": "closed", "claim_number": "CLM-9"},
            )

    def test_same_status_is_ignored(self):
        self.services.automations.create({"name": "Any", "trigger_type": "status_change"})
        executions = handle_event(
            self.services,
            "claim.status_changed",
            {"claim_id": self.claim["id"], "old_status": "open", "new_status": "open"},
        )
        self.assertEqual(executions, [])

    def test_task_completed_twice_is_ignored(self):
        self.services.automations.create({"name": "Done", "trigger_type": "task_completed"})
        payload = {"claim_id": self.claim["id"], "task_id": "t1", "task_title": "Call", "old_status": "completed"}
        self.assertEqual(handle_event(self.services, "task.completed", payload), [])
        payload["old_status"] = "pending"
        self.assertEqual(len(handle_event(self.services, "task.completed", payload)), 1)

    def test_inspection_scheduled(self):
        automation = self.services.automations.create({"name": "Insp", "trigger_type": "inspection_scheduled"})
        executions = handle_event(
            self.services,
            "inspection.scheduled",
            {"claim_id": self.claim["id"], "inspection_id": "i1", "inspection_date": "2026-11-02", "inspector_name": "Sam"},
        )
        self.assertEqual(len(executions), 1)
        self.assertEqual(executions[0]["automation_id"], automation["id"])
        self.assertEqual(executions[0]["trigger_data"]["inspector_name"], "Sam")

    def test_unknown_event_is_validation_error(self):
        with self.assertRaises(ValidationError):
            handle_event(self.services, "claim.deleted", {})


if __name__ == "__main__":
    unittest.main()
