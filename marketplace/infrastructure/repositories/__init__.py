from .catalog_repository import CatalogRepository
from .partner_repository import PartnerRepository
from .service_request_repository import ServiceRequestRepository
from .status_event_repository import StatusEventRepository

__all__ = [
    "CatalogRepository",
    "PartnerRepository",
    "ServiceRequestRepository",
    "StatusEventRepository",
]
