"""
Business registration: launch-region gate, identifier uniqueness and the
platform-wide delivery range.

A business identifier is reserved by creating a document keyed by it in the
``business-id`` collection. The store rejects a second document with the same
key, so two concurrent registrations cannot both win.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import pendulum

from ..domain.exceptions import ConflictError, NotFoundError, ValidationError
from ..domain.models import (
    DOC_DELIVERY_RANGE,
    DOC_LAUNCH_REGION,
    FIELD_BUSINESS_REF_ID,
    REF_BUSINESS,
    REF_BUSINESS_ID,
    REF_CROWN_ONSPOT,
    REF_USER,
    Location,
    OperatingTime,
    parse_flag,
    parse_opening_days,
)
from .gateways import StorageGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a create or update; ``available`` is False outside the launch region."""
    available: bool
    business_id: str = ""
    business_ref_id: str = ""


def _business_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a business payload and build the stored fields.

    The partner list is never part of the payload; it is only changed by
    the relationship coordinator.
    """
    business_id = str(data.get("businessId") or "").strip()
    if not business_id:
        raise ValidationError("businessId is required")

    location = Location.from_document(data.get("location") or {})
    try:
        opening = OperatingTime.from_document(data["openingTime"])
        closing = OperatingTime.from_document(data["closingTime"])
    except KeyError as exc:
        raise ValidationError(f"{exc.args[0]} is required") from exc

    delivery_range = data.get("deliveryRange")
    if delivery_range is not None:
        try:
            delivery_range = float(delivery_range)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"deliveryRange must be a number, got {delivery_range!r}") from exc
        if delivery_range < 0:
            raise ValidationError("deliveryRange must not be negative")

    opening_days = parse_opening_days(data.get("openingDays"))

    return {
        "displayName": data.get("displayName") or "",
        "businessId": business_id,
        "businessType": data.get("businessType") or "",
        "mobileNumber": data.get("mobileNumber") or "",
        "email": data.get("email") or "",
        "website": data.get("website") or "",
        "location": location.to_document(),
        "openingTime": opening.to_document(),
        "closingTime": closing.to_document(),
        "openingDays": sorted(opening_days) if opening_days is not None else None,
        "deliveryRange": delivery_range,
        "passiveOpenEnable": parse_flag(data, "passiveOpenEnable"),
    }


class BusinessRegistry:
    """Creates and updates business aggregates."""

    def __init__(self, storage: StorageGateway) -> None:
        self._storage = storage

    async def check_launch_region(self, postal_code: str) -> bool:
        """
        Check whether the platform operates at ``postal_code``.

        Raises:
            NotFoundError: If no launch region has been configured
        """
        document = await self._storage.get_document(REF_CROWN_ONSPOT, DOC_LAUNCH_REGION)
        postal_codes = {str(code) for code in document.get("postalCode") or []}
        return str(postal_code) in postal_codes

    async def _in_launch_region(self, postal_code: str) -> bool:
        try:
            return await self.check_launch_region(postal_code)
        except NotFoundError:
            # No region configured yet: registration is not restricted.
            return True

    async def _claim_business_id(self, business_id: str, business_ref_id: str) -> None:
        try:
            await self._storage.create_document(
                REF_BUSINESS_ID, {FIELD_BUSINESS_REF_ID: business_ref_id}, doc_id=business_id
            )
        except ConflictError:
            owner = await self._storage.get_document(REF_BUSINESS_ID, business_id)
            if owner.get(FIELD_BUSINESS_REF_ID) != business_ref_id:
                raise ConflictError("Business ID is not available.")

    async def _release_business_id(self, business_id: str, business_ref_id: str) -> None:
        try:
            owner = await self._storage.get_document(REF_BUSINESS_ID, business_id)
        except NotFoundError:
            return
        if owner.get(FIELD_BUSINESS_REF_ID) == business_ref_id:
            await self._storage.delete_document(REF_BUSINESS_ID, business_id)

    async def _raise_common_range(self, delivery_range: Optional[float]) -> None:
        if delivery_range is None:
            return
        value = await self._storage.raise_to_max(REF_CROWN_ONSPOT, DOC_DELIVERY_RANGE, "value", delivery_range)
        if value == delivery_range:
            logger.info("Common delivery range is now %.0f m", value)

    async def create_business(self, data: Mapping[str, Any]) -> RegistrationResult:
        """
        Register a new business owned by ``data["creator"]``.

        Raises:
            ValidationError: If the payload is malformed
            ConflictError: If the business identifier is taken
            NotFoundError: If the creator has no user record
        """
        fields = _business_fields(data)
        creator = data.get("creator")
        if not creator:
            raise ValidationError("creator is required")

        if not await self._in_launch_region(fields["location"]["postalCode"]):
            return RegistrationResult(available=False)

        await self._storage.get_document(REF_USER, creator)

        business_ref_id = uuid.uuid4().hex[:20]
        business_id = fields["businessId"]
        await self._claim_business_id(business_id, business_ref_id)

        fields.update(
            {
                FIELD_BUSINESS_REF_ID: business_ref_id,
                "creator": creator,
                "createdOn": pendulum.now("UTC").to_iso8601_string(),
                "holder": [{"userId": creator, "role": "owner"}],
            }
        )
        try:
            await self._storage.create_document(REF_BUSINESS, fields, doc_id=business_ref_id)
        except Exception:
            await self._release_business_id(business_id, business_ref_id)
            raise

        await self._storage.update_fields(
            REF_USER,
            creator,
            {
                "hasOnSpotBusinessAccount": True,
                "businessId": business_id,
                FIELD_BUSINESS_REF_ID: business_ref_id,
            },
        )
        await self._raise_common_range(fields["deliveryRange"])

        logger.info("Business %s registered as %s", business_id, business_ref_id)
        return RegistrationResult(available=True, business_id=business_id, business_ref_id=business_ref_id)

    async def update_business(self, business_ref_id: str, data: Mapping[str, Any]) -> RegistrationResult:
        """
        Update the profile of an existing business.

        A changed identifier is claimed before the profile is written and
        the old one released afterwards; holders get the new identifier.
        """
        existing = await self._storage.get_document(REF_BUSINESS, business_ref_id)
        fields = _business_fields(data)

        if not await self._in_launch_region(fields["location"]["postalCode"]):
            return RegistrationResult(available=False)

        old_business_id = existing.get("businessId") or ""
        new_business_id = fields["businessId"]
        changed_id = new_business_id != old_business_id
        if changed_id:
            await self._claim_business_id(new_business_id, business_ref_id)

        await self._storage.update_fields(REF_BUSINESS, business_ref_id, fields)

        if changed_id:
            if old_business_id:
                await self._release_business_id(old_business_id, business_ref_id)
            for holder in existing.get("holder") or []:
                await self._storage.update_fields(REF_USER, holder["userId"], {"businessId": new_business_id})

        old_range = existing.get("deliveryRange")
        new_range = fields["deliveryRange"]
        if new_range is not None and (old_range is None or new_range > old_range):
            await self._raise_common_range(new_range)

        logger.info("Business %s updated", business_ref_id)
        return RegistrationResult(available=True, business_id=new_business_id, business_ref_id=business_ref_id)
