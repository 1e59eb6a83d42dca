import unittest

from marketplace import create_app
from marketplace.config import Config
from marketplace.db import close_db, get_db
from marketplace.messages import error_message
from marketplace.lifecycle.order_numbers import ORDER_NUMBER_PATTERN
from tests.helpers.catalog import (
    LOW_STOCK_MATERIAL_ID,
    SUPPLIER_PARTNER_ID,
    future_date,
    material_payload,
    seed_catalog,
    vehicle_payload,
)
from tests.helpers.temp_db import TempDbSandbox


CONSUMER_HEADERS = {"X-User-Id": "user-consumer", "X-User-Role": "consumer"}
STRANGER_HEADERS = {"X-User-Id": "user-stranger", "X-User-Role": "consumer"}
SUPPLIER_HEADERS = {
    "X-User-Id": "user-supplier",
    "X-User-Role": "material_supplier",
    "X-Partner-Id": SUPPLIER_PARTNER_ID,
}


def _build_temp_app(temp_db: TempDbSandbox, **overrides):
    attrs = {
        "TESTING": True,
        "AUTH_ENABLED": True,
        "AUTH_TRUST_HEADERS": True,
        "LOG_JSON": False,
    }
    attrs.update(overrides)
    return create_app(temp_db.make_config(Config, **attrs))


class ServiceRequestApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="service_request_api")
        self.app = _build_temp_app(self._temp_db)
        self.client = self.app.test_client()
        with self.app.app_context():
            seed_catalog(get_db())
            close_db()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self.app.extensions["notification_dispatcher"].shutdown()
        self._temp_db.cleanup()

    def _create(self, **overrides):
        return self.client.post(
            "/api/service-requests",
            headers=CONSUMER_HEADERS,
            json=material_payload(future_date(), **overrides),
        )

    def test_identity_is_required(self) -> None:
        response = self.client.post("/api/service-requests", json=material_payload(future_date()))
        self.assertEqual(response.status_code, 401)
        payload = response.get_json()
        self.assertEqual(payload["error"], "auth_required")
        self.assertEqual(payload["message"], error_message("auth_required"))
        self.assertTrue(payload["request_id"])

    def test_create_returns_created_record(self) -> None:
        response = self._create()
        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertEqual(payload["status"], "pending")
        self.assertEqual(payload["total_price"], "50.00")
        self.assertEqual(payload["requester_id"], "user-consumer")
        self.assertTrue(ORDER_NUMBER_PATTERN.match(payload["tracking"]["order_number"]))
        self.assertEqual(payload["flow"]["next_statuses"], ["cancelled"])
        self.assertEqual(payload["contact"]["email"], "dana@example.com")

    def test_validation_errors_are_listed(self) -> None:
        response = self.client.post(
            "/api/service-requests",
            headers=CONSUMER_HEADERS,
            json={"kind": "material", "address": "x"},
        )
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "validation_error")
        fields = {item["field"] for item in payload["errors"]}
        self.assertTrue({"address", "required_by_date", "contact.email", "material_id"} <= fields)

    def test_huge_integers_are_rejected_as_validation_errors(self) -> None:
        response = self.client.post(
            "/api/service-requests",
            headers=CONSUMER_HEADERS,
            json=vehicle_payload(future_date(), duration=10**20),
        )
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "validation_error")
        self.assertEqual([item["field"] for item in payload["errors"]], ["duration"])

    def test_status_filter_accepts_dashed_alias(self) -> None:
        self._create()
        response = self.client.get("/api/service-requests?status=in-progress", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["pagination"]["total"], 0)

    def test_insufficient_stock_reports_available_amount(self) -> None:
        response = self._create(material_id=LOW_STOCK_MATERIAL_ID, quantity=10)
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "insufficient_stock")
        self.assertEqual(payload["available"], 5)
        self.assertEqual(payload["unit"], "tons")

    def test_full_lifecycle_over_http(self) -> None:
        request_id = self._create().get_json()["id"]

        response = self.client.put(f"/api/service-requests/{request_id}/assignment", headers=SUPPLIER_HEADERS, json={})
        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
        self.assertEqual(response.get_json()["assigned_partner_id"], SUPPLIER_PARTNER_ID)

        for status in ("confirmed", "in_progress", "completed"):
            response = self.client.put(
                f"/api/service-requests/{request_id}/status",
                headers=SUPPLIER_HEADERS,
                json={"status": status},
            )
            self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
            self.assertEqual(response.get_json()["status"], status)
        self.assertIsNotNone(response.get_json()["completed_date"])

        response = self.client.post(
            f"/api/service-requests/{request_id}/feedback",
            headers=CONSUMER_HEADERS,
            json={"rating": 5, "comment": "On time"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["feedback"]["rating"], 5)

        response = self.client.post(
            f"/api/service-requests/{request_id}/feedback",
            headers=CONSUMER_HEADERS,
            json={"rating": 4},
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"], "feedback_already_provided")

        response = self.client.post(
            f"/api/service-requests/{request_id}/feedback",
            headers=STRANGER_HEADERS,
            json={"rating": 4},
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.get(f"/api/service-requests/{request_id}/history", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [item["to_status"] for item in response.get_json()["items"]],
            ["pending", "pending", "confirmed", "in_progress", "completed"],
        )

    def test_invalid_transition_and_forbidden(self) -> None:
        request_id = self._create().get_json()["id"]

        response = self.client.put(
            f"/api/service-requests/{request_id}/status",
            headers=SUPPLIER_HEADERS,
            json={"status": "confirmed"},
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["message"], error_message("partner_not_assigned"))

        response = self.client.put(
            f"/api/service-requests/{request_id}/status",
            headers=CONSUMER_HEADERS,
            json={"status": "cancelled", "notes": "No longer needed"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["cancellation"]["reason"], "No longer needed")

        response = self.client.put(
            f"/api/service-requests/{request_id}/status",
            headers=CONSUMER_HEADERS,
            json={"status": "cancelled"},
        )
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertEqual(payload["error"], "invalid_transition")
        self.assertEqual(payload["from_status"], "cancelled")

    def test_consumer_cannot_claim_assignment(self) -> None:
        request_id = self._create().get_json()["id"]
        response = self.client.put(
            f"/api/service-requests/{request_id}/assignment",
            headers=CONSUMER_HEADERS,
            json={"partner_id": SUPPLIER_PARTNER_ID},
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"], "permission_denied")

    def test_get_and_list(self) -> None:
        first_id = self._create().get_json()["id"]
        self._create(quantity=1)

        response = self.client.get(f"/api/service-requests/{first_id}", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["id"], first_id)

        response = self.client.get(f"/api/service-requests/{first_id}", headers=STRANGER_HEADERS)
        self.assertEqual(response.status_code, 403)

        response = self.client.get("/api/service-requests/does-not-exist", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "service_request_not_found")

        response = self.client.get("/api/service-requests?limit=1&page=2", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(len(payload["items"]), 1)
        self.assertEqual(payload["pagination"], {"page": 2, "limit": 1, "total": 2, "pages": 2})

        response = self.client.get("/api/service-requests", headers=STRANGER_HEADERS)
        self.assertEqual(response.get_json()["pagination"]["total"], 0)

    def test_request_id_is_echoed(self) -> None:
        response = self.client.get(
            "/api/service-requests",
            headers={**CONSUMER_HEADERS, "X-Request-Id": "req-abc-123"},
        )
        self.assertEqual(response.headers.get("X-Request-Id"), "req-abc-123")

    def test_headers_are_ignored_unless_trusted(self) -> None:
        app = _build_temp_app(self._temp_db, AUTH_TRUST_HEADERS=False)
        response = app.test_client().get("/api/service-requests", headers=CONSUMER_HEADERS)
        self.assertEqual(response.status_code, 401)
        app.extensions["notification_dispatcher"].shutdown()

    def test_session_identity_is_used(self) -> None:
        app = _build_temp_app(self._temp_db, AUTH_TRUST_HEADERS=False)
        client = app.test_client()
        with client.session_transaction() as session:
            session["user_id"] = "user-consumer"
            session["user_role"] = "consumer"
        response = client.get("/api/service-requests")
        self.assertEqual(response.status_code, 200)
        app.extensions["notification_dispatcher"].shutdown()


if __name__ == "__main__":
    unittest.main()
