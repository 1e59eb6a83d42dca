import unittest

from marketplace.lifecycle.flow_policy import ALL_STATUSES
from marketplace.messages import MESSAGES, STATUS_ITEMS, error_message, status_label, success_message


class MessageCatalogueTest(unittest.TestCase):
    def test_every_status_has_label_and_description(self) -> None:
        self.assertEqual({item["key"] for item in STATUS_ITEMS}, set(ALL_STATUSES))
        for item in STATUS_ITEMS:
            self.assertTrue((item.get("label") or "").strip(), f"empty label: {item['key']}")
            self.assertTrue((item.get("description") or "").strip(), f"empty description: {item['key']}")

    def test_denial_and_conflict_keys_have_messages(self) -> None:
        for key in (
            "cancel_requires_requester",
            "partner_not_assigned",
            "not_assigned_partner",
            "partner_not_approved",
            "feedback_already_provided",
            "partner_already_assigned",
            "transition_conflict",
            "order_number_exhausted",
        ):
            self.assertIn(key, MESSAGES["error"])

    def test_unknown_keys_fall_back(self) -> None:
        self.assertEqual(error_message("nope", "fallback"), "fallback")
        self.assertEqual(success_message("nope"), "nope")
        self.assertEqual(status_label("in_progress"), "In progress")
        self.assertEqual(status_label("weird"), "weird")


if __name__ == "__main__":
    unittest.main()
