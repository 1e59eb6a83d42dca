from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

from marketplace.core import (
    DomainEvent,
    EventBus,
    FeedbackAdded,
    PartnerAssigned,
    ServiceRequestCreated,
    ServiceRequestStatusChanged,
)
from marketplace.observability import bind_request_id, current_request_id, observe_notification_dispatch


@dataclass(frozen=True)
class NotificationEvent:
    type: str
    request_id: str
    recipient_contact: Dict[str, Any]
    payload: Dict[str, Any] = field(default_factory=dict)


class NotificationSender(Protocol):
    def send(self, event: NotificationEvent) -> None:
        ...


class LogNotificationSender:
    """Stand-in transport: records what would have been sent."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("marketplace.notifications")

    def send(self, event: NotificationEvent) -> None:
        self._logger.info(
            "notification_sent",
            extra={
                "notification_type": event.type,
                "service_request_id": event.request_id,
                "recipient": event.recipient_contact,
            },
        )


def notification_for(event: DomainEvent) -> NotificationEvent | None:
    if isinstance(event, ServiceRequestCreated):
        return NotificationEvent(
            type="request_created",
            request_id=event.service_request_id,
            recipient_contact={"email": event.contact_email, "phone": event.contact_phone},
            payload={"order_number": event.order_number, "kind": event.kind, "total_price": event.total_price},
        )
    if isinstance(event, ServiceRequestStatusChanged):
        return NotificationEvent(
            type=f"status_{event.to_status}",
            request_id=event.service_request_id,
            recipient_contact={"email": event.contact_email, "phone": event.contact_phone},
            payload={
                "order_number": event.order_number,
                "from_status": event.from_status,
                "to_status": event.to_status,
                "notes": event.notes,
            },
        )
    if isinstance(event, PartnerAssigned):
        return NotificationEvent(
            type="partner_assigned",
            request_id=event.service_request_id,
            recipient_contact={"email": event.contact_email, "phone": event.contact_phone},
            payload={"order_number": event.order_number, "partner_id": event.partner_id},
        )
    if isinstance(event, FeedbackAdded):
        return NotificationEvent(
            type="feedback_received",
            request_id=event.service_request_id,
            recipient_contact={"partner_id": event.assigned_partner_id},
            payload={"order_number": event.order_number, "rating": event.rating},
        )
    return None


class NotificationDispatcher:
    """Fire-and-forget delivery of notifications on a small worker pool.

    Sender failures are logged and counted; they never reach the caller. There
    are no retries.
    """

    def __init__(
        self,
        sender: NotificationSender | None = None,
        *,
        workers: int = 2,
        synchronous: bool = False,
        enabled: bool = True,
    ) -> None:
        self.sender = sender or LogNotificationSender()
        self.enabled = bool(enabled)
        self.synchronous = bool(synchronous)
        self._executor: ThreadPoolExecutor | None = None
        if self.enabled and not self.synchronous:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, int(workers)),
                thread_name_prefix="notifications",
            )
        self._logger = logging.getLogger("marketplace")

    @classmethod
    def from_app_config(cls, config, sender: NotificationSender | None = None) -> "NotificationDispatcher":
        return cls(
            sender,
            workers=int(config.get("NOTIFICATION_WORKERS", 2)),
            synchronous=bool(config.get("NOTIFICATIONS_SYNC", False)),
            enabled=bool(config.get("NOTIFICATIONS_ENABLED", True)),
        )

    def register(self, event_bus: EventBus) -> None:
        for event_type in (ServiceRequestCreated, ServiceRequestStatusChanged, PartnerAssigned, FeedbackAdded):
            event_bus.subscribe(event_type, self.handle_domain_event)

    def handle_domain_event(self, event: DomainEvent) -> None:
        notification = notification_for(event)
        if notification is not None:
            self.notify(notification)

    def notify(self, event: NotificationEvent) -> Future | None:
        if not self.enabled:
            return None
        request_id = current_request_id(default="n/a")
        if self._executor is None:
            self._deliver(event, request_id)
            return None
        return self._executor.submit(self._deliver, event, request_id)

    def _deliver(self, event: NotificationEvent, request_id: str) -> None:
        with bind_request_id(request_id):
            try:
                self.sender.send(event)
            except Exception:  # noqa: BLE001
                observe_notification_dispatch(event.type, "failed")
                self._logger.exception(
                    "notification_dispatch_failed",
                    extra={"notification_type": event.type, "service_request_id": event.request_id},
                )
                return
            observe_notification_dispatch(event.type, "sent")

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
