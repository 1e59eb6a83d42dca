import unittest
from datetime import date
from decimal import Decimal

from marketplace.errors import ValidationError
from marketplace.lifecycle.validation import (
    INTEGER_FIELD_MAX,
    is_valid_email,
    is_valid_phone,
    parse_create_payload,
    parse_feedback_payload,
    parse_status_payload,
)
from tests.helpers.catalog import material_payload, vehicle_payload


TODAY = date(2030, 1, 1)


class CreatePayloadValidationTest(unittest.TestCase):
    def _fields(self, payload) -> list[str]:
        with self.assertRaises(ValidationError) as ctx:
            parse_create_payload(payload, today=TODAY)
        return [item["field"] for item in ctx.exception.errors]

    def test_valid_material_payload(self) -> None:
        parsed = parse_create_payload(
            material_payload("2030-02-01", special_requirements=["Tail lift", "  "], notes=" gate code 42 "),
            today=TODAY,
        )
        self.assertEqual(parsed.kind, "material")
        self.assertEqual(parsed.quantity, 2)
        self.assertIsNone(parsed.vehicle_id)
        self.assertEqual(parsed.required_by_date, date(2030, 2, 1))
        self.assertEqual(parsed.special_requirements, ["Tail lift"])
        self.assertEqual(parsed.notes, "gate code 42")

    def test_valid_vehicle_payload(self) -> None:
        parsed = parse_create_payload(vehicle_payload("2030-01-01"), today=TODAY)
        self.assertEqual(parsed.kind, "vehicle")
        self.assertEqual(parsed.duration, 3)
        self.assertEqual(parsed.duration_unit, "days")
        self.assertIsNone(parsed.material_id)

    def test_all_field_errors_are_reported_together(self) -> None:
        fields = self._fields(
            {
                "kind": "material",
                "required_by_date": "2029-12-31",
                "address": "abc",
                "contact": {"name": "", "phone": "12", "email": "not-an-email"},
            }
        )
        self.assertEqual(
            set(fields),
            {
                "required_by_date",
                "address",
                "contact.name",
                "contact.phone",
                "contact.email",
                "material_id",
                "quantity",
            },
        )

    def test_unknown_kind(self) -> None:
        self.assertIn("kind", self._fields(material_payload("2030-02-01", kind="labour")))

    def test_quantity_must_be_positive_integer(self) -> None:
        for bad in (0, -3, 1.5, "two", True, None):
            with self.subTest(quantity=bad):
                self.assertIn("quantity", self._fields(material_payload("2030-02-01", quantity=bad)))
        parsed = parse_create_payload(material_payload("2030-02-01", quantity="4"), today=TODAY)
        self.assertEqual(parsed.quantity, 4)

    def test_other_kind_fields_must_be_absent(self) -> None:
        fields = self._fields(material_payload("2030-02-01", vehicle_id="veh-crane", duration=2))
        self.assertIn("vehicle_id", fields)
        self.assertIn("duration", fields)

        fields = self._fields(vehicle_payload("2030-02-01", material_id="mat-sand"))
        self.assertEqual(fields, ["material_id"])

    def test_vehicle_duration_unit(self) -> None:
        self.assertIn("duration_unit", self._fields(vehicle_payload("2030-02-01", duration_unit="weeks")))

    def test_required_by_date_must_parse(self) -> None:
        self.assertIn("required_by_date", self._fields(material_payload("31/01/2030")))
        self.assertIn("required_by_date", self._fields(material_payload("")))

    def test_required_by_date_cannot_be_in_the_past(self) -> None:
        self.assertEqual(self._fields(material_payload("2029-12-31")), ["required_by_date"])
        parsed = parse_create_payload(material_payload("2030-01-01"), today=TODAY)
        self.assertEqual(parsed.required_by_date, TODAY)

    def test_integer_fields_are_bounded(self) -> None:
        self.assertEqual(self._fields(material_payload("2030-02-01", quantity=10**20)), ["quantity"])
        self.assertEqual(self._fields(vehicle_payload("2030-02-01", duration=INTEGER_FIELD_MAX + 1)), ["duration"])
        parsed = parse_create_payload(vehicle_payload("2030-02-01", duration=INTEGER_FIELD_MAX), today=TODAY)
        self.assertEqual(parsed.duration, INTEGER_FIELD_MAX)

    def test_datetime_required_by_date_is_accepted(self) -> None:
        parsed = parse_create_payload(material_payload("2030-01-15T10:00:00Z"), today=TODAY)
        self.assertEqual(parsed.required_by_date, date(2030, 1, 15))

    def test_client_total_price_is_checked_but_kept_separately(self) -> None:
        self.assertIn("total_price", self._fields(material_payload("2030-02-01", total_price=-1)))
        self.assertIn("total_price", self._fields(material_payload("2030-02-01", total_price="lots")))
        parsed = parse_create_payload(material_payload("2030-02-01", total_price="1.00"), today=TODAY)
        self.assertEqual(parsed.client_total_price, Decimal("1.00"))

    def test_special_requirements_must_be_strings(self) -> None:
        self.assertIn(
            "special_requirements",
            self._fields(material_payload("2030-02-01", special_requirements="crane")),
        )
        self.assertIn(
            "special_requirements",
            self._fields(material_payload("2030-02-01", special_requirements=["ok", 3])),
        )

    def test_notes_length(self) -> None:
        self.assertIn("notes", self._fields(material_payload("2030-02-01", notes="x" * 1001)))

    def test_email_is_normalised(self) -> None:
        payload = material_payload("2030-02-01")
        payload["contact"] = {"name": "Dana", "phone": "5550102030", "email": " Dana@Example.COM "}
        parsed = parse_create_payload(payload, today=TODAY)
        self.assertEqual(parsed.contact.email, "dana@example.com")

    def test_body_must_be_object(self) -> None:
        with self.assertRaises(ValidationError):
            parse_create_payload(["not", "a", "dict"], today=TODAY)


class ContactFormatTest(unittest.TestCase):
    def test_phone(self) -> None:
        self.assertTrue(is_valid_phone("+44 20 7946 0958"))
        self.assertTrue(is_valid_phone("(555) 010-2030"))
        self.assertFalse(is_valid_phone("12345"))
        self.assertFalse(is_valid_phone("phone me"))
        self.assertFalse(is_valid_phone("+1234567890123456"))

    def test_email(self) -> None:
        self.assertTrue(is_valid_email("ops@site.co"))
        self.assertFalse(is_valid_email("ops@site"))
        self.assertFalse(is_valid_email("ops site@x.com"))


class StatusAndFeedbackValidationTest(unittest.TestCase):
    def test_status_must_be_known(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_status_payload({"status": "shipped"})
        self.assertEqual(ctx.exception.errors[0]["field"], "status")

    def test_status_accepts_dashed_alias(self) -> None:
        self.assertEqual(parse_status_payload({"status": "in-progress"}).status, "in_progress")

    def test_notes_are_trimmed(self) -> None:
        self.assertEqual(parse_status_payload({"status": "confirmed", "notes": "  on it "}).notes, "on it")
        self.assertIsNone(parse_status_payload({"status": "confirmed", "notes": "   "}).notes)

    def test_rating_bounds(self) -> None:
        for bad in (0, 6, 2.5, "five", True, None):
            with self.subTest(rating=bad):
                with self.assertRaises(ValidationError):
                    parse_feedback_payload({"rating": bad})
        self.assertEqual(parse_feedback_payload({"rating": "5"}).rating, 5)
        self.assertEqual(parse_feedback_payload({"rating": 1}).rating, 1)

    def test_comment_length(self) -> None:
        with self.assertRaises(ValidationError):
            parse_feedback_payload({"rating": 4, "comment": "x" * 501})
        self.assertEqual(parse_feedback_payload({"rating": 4, "comment": "x" * 500}).comment, "x" * 500)


if __name__ == "__main__":
    unittest.main()
