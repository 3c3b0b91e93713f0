"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityResolver
from .geo import bounding_box, distance
from .models import (
    BoundingBox,
    Business,
    BusinessView,
    GeoPoint,
    OperatingTime,
    PartnershipRequest,
    PartnershipStatus,
    User,
)
from .relationship import RelationshipStateMachine, Transition
from .time_window import is_within_window, to_comparable_minutes

__all__ = [
    "AvailabilityResolver",
    "BoundingBox",
    "Business",
    "BusinessView",
    "GeoPoint",
    "OperatingTime",
    "PartnershipRequest",
    "PartnershipStatus",
    "RelationshipStateMachine",
    "Transition",
    "User",
    "bounding_box",
    "distance",
    "is_within_window",
    "to_comparable_minutes",
]
