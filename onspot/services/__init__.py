"""
Service layer helpers that orchestrate storage, notifications and domain logic.
"""

from .availability_service import AvailabilityService
from .business_registry import BusinessRegistry, RegistrationResult
from .gateways import Notification, NotificationGateway, StorageGateway
from .notifications import NotificationDispatcher
from .relationship_coordinator import RelationshipCoordinator

__all__ = [
    "AvailabilityService",
    "BusinessRegistry",
    "Notification",
    "NotificationDispatcher",
    "NotificationGateway",
    "RegistrationResult",
    "RelationshipCoordinator",
    "StorageGateway",
]
