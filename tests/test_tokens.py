import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from claimflow import InspectionTrigger, render


class TestTokens(unittest.TestCase):
    def test_claim_and_trigger_tokens(self):
        out = render("Hello {claim.name}, due {trigger.due}", {"name": "Acme"}, {"due": "5/1"})
        self.assertEqual(out, "Hello Acme, due 5/1")

    def test_missing_field_renders_empty(self):
        self.assertEqual(render("[{claim.missing}]", {"name": "Acme"}, {}), "[]")
        self.assertEqual(render("[{trigger.nope}]", {"name": "Acme"}, {}), "[]")

    def test_missing_claim_renders_empty(self):
        self.assertEqual(render("Claim {claim.claim_number}", None, {}), "Claim ")

    def test_unknown_scope_and_malformed_tokens(self):
        self.assertEqual(render("{other.x}|{claim.}", {"x": 1}, {}), "|")
        self.assertEqual(render("{not a token} {claim", {"x": 1}, {}), "{not a token} {claim")

    def test_nested_trigger_path(self):
        out = render("{trigger.customer.name}", {}, {"customer": {"name": "Ada"}})
        self.assertEqual(out, "Ada")

    def test_container_and_none_values_render_empty(self):
        out = render("{trigger.items}/{trigger.meta}/{trigger.none}", {}, {"items": [1], "meta": {"a": 1}, "none": None})
        self.assertEqual(out, "//")

    def test_falsy_scalars_keep_their_text(self):
        out = render("{claim.amount} {claim.closed}", {"amount": 0, "closed": False}, {})
        self.assertEqual(out, "0 False")

    def test_inspection_aliases_match_generic_path(self):
        trigger = {
            "inspection_id": "i1",
            "inspection_date": "2026-11-02",
            "inspection_time": "14:30",
            "inspection_type": "Roof",
            "inspector_name": "Sam",
            "notes": "Bring ladder",
        }
        aliases = render(
            "{inspection.date}|{inspection.time}|{inspection.type}|{inspection.inspector}|{inspection.notes}",
            {},
            trigger,
        )
        generic = render(
            "{trigger.inspection_date}|{trigger.inspection_time}|{trigger.inspection_type}|{trigger.inspector_name}|{trigger.notes}",
            {},
            trigger,
        )
        self.assertEqual(aliases, generic)
        self.assertEqual(aliases, "2026-11-02|14:30|Roof|Sam|Bring ladder")

    def test_inspection_alias_falls_back_to_record(self):
        inspection = {"inspection_date": "2026-11-05", "inspector_name": "Lee"}
        out = render("{inspection.date} {inspection.inspector}", {}, {}, inspection)
        self.assertEqual(out, "2026-11-05 Lee")

    def test_trigger_value_wins_over_record(self):
        inspection = {"inspection_date": "2026-11-05"}
        out = render("{inspection.date}", {}, {"inspection_date": "2026-12-01"}, inspection)
        self.assertEqual(out, "2026-12-01")

    def test_unknown_inspection_alias_is_empty(self):
        self.assertEqual(render("[{inspection.color}]", {}, {"inspection_date": "x"}), "[]")

    def test_accepts_parsed_trigger(self):
        trigger = InspectionTrigger({"inspection_date": "2026-11-02"})
        self.assertEqual(render("{inspection.date}", {}, trigger), "2026-11-02")

    def test_never_raises_on_odd_inputs(self):
        self.assertEqual(render(None, None, None), "")
        self.assertEqual(render("{claim.a}", "not-a-dict", ["x"]), "")
        self.assertEqual(render(12, {}, {}), "12")


if __name__ == "__main__":
    unittest.main()
