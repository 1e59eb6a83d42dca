from marketplace.core.event_bus import (
    DomainEvent,
    EventBus,
    FeedbackAdded,
    PartnerAssigned,
    ServiceRequestCreated,
    ServiceRequestStatusChanged,
    get_event_bus,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "ServiceRequestCreated",
    "ServiceRequestStatusChanged",
    "PartnerAssigned",
    "FeedbackAdded",
    "get_event_bus",
]
