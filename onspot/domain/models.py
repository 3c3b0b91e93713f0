"""
Domain models for businesses, delivery partners and partnership requests.

Documents are plain mappings as returned by the storage gateway; each model
knows how to read itself from (and write itself back to) that shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .exceptions import ValidationError

# Collections
REF_USER = "user"
REF_BUSINESS = "business"
REF_NOTIFICATION = "notification"
REF_CROWN_ONSPOT = "crown-onspot"
REF_BUSINESS_ID = "business-id"

# Platform-wide documents in REF_CROWN_ONSPOT
DOC_DELIVERY_RANGE = "deliveryRange"
DOC_LAUNCH_REGION = "launchRegion"

# Partner lists embedded in both aggregates
FIELD_USER_PARTNERS = "businessOSD"
FIELD_BUSINESS_PARTNERS = "osd"
FIELD_BUSINESS_REF_ID = "businessRefId"
FIELD_USER_ID = "userId"
FIELD_STATUS = "status"
FIELD_DISPLAY_NAME = "displayName"

ACCOUNT_PREFIX_OSB = "osb::"
ACCOUNT_PREFIX_OSD = "osd::"

WEEKDAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


class PartnershipStatus(str, Enum):
    """Lifecycle of a delivery partnership between an OSD user and an OSB."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({PartnershipStatus.PENDING, PartnershipStatus.ACCEPTED})


def osb_account(business_ref_id: str) -> str:
    return f"{ACCOUNT_PREFIX_OSB}{business_ref_id}"


def osd_account(user_id: str) -> str:
    return f"{ACCOUNT_PREFIX_OSD}{user_id}"


@dataclass(frozen=True, order=True)
class GeoPoint:
    """
    A latitude/longitude pair in decimal degrees.

    Ordering is lexicographic (latitude first), matching how the document
    store orders geo point values in range queries.
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude {self.latitude} must be between -90 and 90")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude {self.longitude} must be between -180 and 180")

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "GeoPoint":
        try:
            return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed geo point: {data!r}") from exc

    def to_document(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned latitude/longitude rectangle. Derived, never persisted.
    """
    southwest: GeoPoint
    northeast: GeoPoint

    def contains(self, point: GeoPoint) -> bool:
        """Check if a point lies inside the box (edges included)."""
        return (
            self.southwest.latitude <= point.latitude <= self.northeast.latitude
            and self.southwest.longitude <= point.longitude <= self.northeast.longitude
        )


@dataclass(frozen=True)
class OperatingTime:
    """
    A wall-clock time repeated daily, recorded in a fixed zone offset.

    The offset is in minutes east of UTC (e.g. 330 for UTC+05:30).
    """
    hour: int
    minute: int
    zone_offset_minutes: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValidationError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValidationError(f"Minute must be between 0 and 59, got {self.minute}")

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "OperatingTime":
        zone = data.get("zone")
        # Older clients wrote an empty string for the local zone.
        offset = int(zone) if isinstance(zone, (int, float)) else 0
        try:
            return cls(hour=int(data["hour"]), minute=int(data["minute"]), zone_offset_minutes=offset)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed operating time: {data!r}") from exc

    def to_document(self) -> Dict[str, int]:
        return {"hour": self.hour, "minute": self.minute, "zone": self.zone_offset_minutes}

    def __str__(self) -> str:
        sign = "+" if self.zone_offset_minutes >= 0 else "-"
        hours, minutes = divmod(abs(self.zone_offset_minutes), 60)
        return f"{self.hour:02d}:{self.minute:02d} UTC{sign}{hours:02d}:{minutes:02d}"


def parse_opening_days(value: Any) -> Optional[FrozenSet[int]]:
    """
    Normalize persisted opening days to weekday numbers (0=Monday, 6=Sunday).

    Accepts numbers or English day names. Returns None when the field is
    absent, which means the business opens every day.
    """
    if value is None:
        return None
    days = set()
    for day in value:
        if isinstance(day, str):
            key = day.strip().lower()
            matches = [num for name, num in WEEKDAY_NAMES.items() if name.startswith(key[:3])] if key else []
            if len(matches) != 1:
                raise ValidationError(f"Unknown weekday: {day!r}")
            days.add(matches[0])
        elif isinstance(day, int) and 0 <= day <= 6:
            days.add(day)
        else:
            raise ValidationError(f"Weekday must be between 0 and 6, got {day!r}")
    return frozenset(days)


def parse_flag(data: Mapping[str, Any], key: str) -> Optional[bool]:
    """Read an optional boolean field; anything but a real bool is malformed."""
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise ValidationError(f"{key} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class PartnerBusiness:
    """Entry in a user's partner list."""
    business_ref_id: str
    status: PartnershipStatus

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "PartnerBusiness":
        return cls(
            business_ref_id=data[FIELD_BUSINESS_REF_ID],
            status=PartnershipStatus(data[FIELD_STATUS]),
        )

    def to_document(self) -> Dict[str, str]:
        return {FIELD_BUSINESS_REF_ID: self.business_ref_id, FIELD_STATUS: self.status.value}


@dataclass(frozen=True)
class DeliveryPartner:
    """Entry in a business's partner list."""
    user_id: str
    status: PartnershipStatus

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "DeliveryPartner":
        return cls(user_id=data[FIELD_USER_ID], status=PartnershipStatus(data[FIELD_STATUS]))

    def to_document(self) -> Dict[str, str]:
        return {FIELD_USER_ID: self.user_id, FIELD_STATUS: self.status.value}


@dataclass(frozen=True)
class Location:
    geo_point: GeoPoint
    postal_code: str = ""
    address_line: str = ""
    how_to_reach: str = ""

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "Location":
        if not isinstance(data, Mapping) or "geoPoint" not in data:
            raise ValidationError("Business location must contain a geoPoint")
        return cls(
            geo_point=GeoPoint.from_document(data["geoPoint"]),
            postal_code=str(data.get("postalCode") or ""),
            address_line=data.get("addressLine") or "",
            how_to_reach=data.get("howToReach") or "",
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "geoPoint": self.geo_point.to_document(),
            "postalCode": self.postal_code,
            "addressLine": self.address_line,
            "howToReach": self.how_to_reach,
        }


@dataclass(frozen=True)
class BusinessView:
    """
    Public projection of a business returned to customers.

    Partner lists, holders and creator fields never leave the core.
    """
    business_ref_id: str
    business_id: str
    display_name: str
    business_type: str
    location: Location
    opening_time: Optional[OperatingTime]
    closing_time: Optional[OperatingTime]
    opening_days: Optional[FrozenSet[int]]
    delivery_range_meters: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "businessRefId": self.business_ref_id,
            "businessId": self.business_id,
            "displayName": self.display_name,
            "businessType": self.business_type,
            "location": self.location.to_document(),
            "openingTime": self.opening_time.to_document() if self.opening_time else None,
            "closingTime": self.closing_time.to_document() if self.closing_time else None,
            "openingDays": sorted(self.opening_days) if self.opening_days is not None else None,
            "deliveryRange": self.delivery_range_meters,
        }


@dataclass
class Business:
    """
    Read-mostly business aggregate.

    ``is_open`` defaults to True and ``passive_open_enabled`` to None
    (treated as enabled) when the stored document omits them.
    """
    business_ref_id: str
    location: Location
    business_id: str = ""
    display_name: str = ""
    business_type: str = ""
    is_open: bool = True
    delivery_range_meters: Optional[float] = None
    passive_open_enabled: Optional[bool] = None
    opening_time: Optional[OperatingTime] = None
    closing_time: Optional[OperatingTime] = None
    opening_days: Optional[FrozenSet[int]] = None
    partners: List[DeliveryPartner] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "Business":
        opening = data.get("openingTime")
        closing = data.get("closingTime")
        delivery_range = data.get("deliveryRange")
        return cls(
            business_ref_id=data.get(FIELD_BUSINESS_REF_ID) or doc_id,
            location=Location.from_document(data.get("location")),
            business_id=data.get("businessId") or "",
            display_name=data.get(FIELD_DISPLAY_NAME) or "",
            business_type=data.get("businessType") or "",
            is_open=parse_flag(data, "open") is not False,
            delivery_range_meters=None if delivery_range is None else float(delivery_range),
            passive_open_enabled=parse_flag(data, "passiveOpenEnable"),
            opening_time=OperatingTime.from_document(opening) if opening else None,
            closing_time=OperatingTime.from_document(closing) if closing else None,
            opening_days=parse_opening_days(data.get("openingDays")),
            partners=[
                DeliveryPartner.from_document(entry)
                for entry in data.get(FIELD_BUSINESS_PARTNERS) or []
            ],
        )

    def find_partner(self, user_id: str) -> Optional[DeliveryPartner]:
        for partner in self.partners:
            if partner.user_id == user_id:
                return partner
        return None

    def to_view(self) -> BusinessView:
        return BusinessView(
            business_ref_id=self.business_ref_id,
            business_id=self.business_id,
            display_name=self.display_name,
            business_type=self.business_type,
            location=self.location,
            opening_time=self.opening_time,
            closing_time=self.closing_time,
            opening_days=self.opening_days,
            delivery_range_meters=self.delivery_range_meters,
        )


@dataclass
class User:
    """The part of a user aggregate this core reads and writes."""
    user_id: str
    display_name: str = ""
    partner_businesses: List[PartnerBusiness] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "User":
        return cls(
            user_id=data.get(FIELD_USER_ID) or doc_id,
            display_name=data.get(FIELD_DISPLAY_NAME) or "",
            partner_businesses=[
                PartnerBusiness.from_document(entry)
                for entry in data.get(FIELD_USER_PARTNERS) or []
            ],
        )

    def find_partner(self, business_ref_id: str) -> Optional[PartnerBusiness]:
        for partner in self.partner_businesses:
            if partner.business_ref_id == business_ref_id:
                return partner
        return None


@dataclass
class PartnershipRequest:
    """
    Audit record of a partnership request.

    Created once, status mutated in place, never deleted. The ``account``
    key addresses notifications to both parties.
    """
    request_id: str
    business_ref_id: str
    user_id: str
    status: PartnershipStatus = PartnershipStatus.PENDING
    request_type: int = 0
    business_snapshot: Dict[str, Any] = field(default_factory=dict)
    user_snapshot: Dict[str, Any] = field(default_factory=dict)

    @property
    def account_key(self) -> List[str]:
        return [osb_account(self.business_ref_id), osd_account(self.user_id)]

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "PartnershipRequest":
        business_ref_id = ""
        user_id = ""
        for account in data.get("account") or []:
            if account.startswith(ACCOUNT_PREFIX_OSB):
                business_ref_id = account[len(ACCOUNT_PREFIX_OSB):]
            elif account.startswith(ACCOUNT_PREFIX_OSD):
                user_id = account[len(ACCOUNT_PREFIX_OSD):]
        if not business_ref_id or not user_id:
            raise ValidationError(f"Partnership request {doc_id} has a malformed account key")
        return cls(
            request_id=doc_id,
            business_ref_id=business_ref_id,
            user_id=user_id,
            status=PartnershipStatus(data.get(FIELD_STATUS, PartnershipStatus.PENDING.value)),
            request_type=int(data.get("type") or 0),
            business_snapshot=dict(data.get("osb") or {}),
            user_snapshot=dict(data.get("osd") or {}),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "account": self.account_key,
            "osb": self.business_snapshot,
            "osd": self.user_snapshot,
            FIELD_STATUS: self.status.value,
            "type": self.request_type,
        }
