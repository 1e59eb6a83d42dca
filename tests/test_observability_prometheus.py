import json
import logging
import unittest

from marketplace import create_app
from marketplace.config import Config
from marketplace.db import close_db, get_db
from marketplace.observability import JsonLogFormatter, reset_metrics_for_tests, set_log_request_id
from tests.helpers.catalog import future_date, material_payload, seed_catalog
from tests.helpers.temp_db import TempDbSandbox


CONSUMER_HEADERS = {"X-User-Id": "user-consumer", "X-User-Role": "consumer"}


class _MetricsConfig(Config):
    TESTING = True
    AUTH_ENABLED = True
    AUTH_TRUST_HEADERS = True
    LOG_JSON = False


class ObservabilityPrometheusTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="observability_metrics")
        cfg = self._temp_db.make_config(_MetricsConfig)
        self.app = create_app(cfg)
        self.client = self.app.test_client()
        with self.app.app_context():
            seed_catalog(get_db())
            close_db()
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def test_metrics_endpoint_exposes_prometheus_metrics(self) -> None:
        self.client.get("/api/unknown", headers=CONSUMER_HEADERS)
        created = self.client.post(
            "/api/service-requests",
            headers=CONSUMER_HEADERS,
            json=material_payload(future_date()),
        )
        self.assertEqual(created.status_code, 201)
        cancelled = self.client.put(
            f"/api/service-requests/{created.get_json()['id']}/status",
            headers=CONSUMER_HEADERS,
            json={"status": "cancelled"},
        )
        self.assertEqual(cancelled.status_code, 200)

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        content_type = response.headers.get("Content-Type") or ""
        self.assertIn("text/plain", content_type)

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_duration_ms_bucket", payload)
        self.assertIn('event_type="ServiceRequestCreated"', payload)
        self.assertIn('event_type="ServiceRequestStatusChanged"', payload)
        self.assertIn(
            'service_request_transition_total{from_status="pending",to_status="cancelled"} 1',
            payload,
        )
        self.assertIn('notification_dispatch_total{event_type="request_created",result="sent"} 1', payload)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("worker-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="marketplace",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="worker_log",
            args=(),
            exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "worker-req-123")
        self.assertEqual(parsed.get("message"), "worker_log")

    def test_health_reports_database_status(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json() or {}
        self.assertEqual(payload.get("status"), "ok")
        self.assertEqual(payload.get("db"), "sqlite")
        self.assertIn("http", payload.get("metrics") or {})


if __name__ == "__main__":
    unittest.main()
