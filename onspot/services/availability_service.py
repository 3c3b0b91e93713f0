"""
Availability search: range query against storage, then the eligibility pipeline.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

import pendulum

from ..domain.availability import AvailabilityResolver
from ..domain.exceptions import NotFoundError, ValidationError
from ..domain.geo import bounding_box
from ..domain.models import (
    DOC_DELIVERY_RANGE,
    REF_BUSINESS,
    REF_CROWN_ONSPOT,
    Business,
    BusinessView,
    GeoPoint,
)
from .gateways import StorageGateway

logger = logging.getLogger(__name__)

GEO_POINT_FIELD = "location.geoPoint"


class AvailabilityService:
    """
    Finds the businesses able to serve a customer's location right now.

    The platform-wide delivery range bounds the candidate query; each
    business's own range and hours are applied by the resolver.
    """

    def __init__(
        self,
        storage: StorageGateway,
        resolver: Optional[AvailabilityResolver] = None,
        default_delivery_range_meters: float = 5000.0,
    ) -> None:
        self._storage = storage
        self._resolver = resolver or AvailabilityResolver()
        self._default_delivery_range_meters = default_delivery_range_meters

    async def common_delivery_range(self) -> float:
        """Platform-wide delivery range, or the configured default if unset."""
        try:
            document = await self._storage.get_document(REF_CROWN_ONSPOT, DOC_DELIVERY_RANGE)
        except NotFoundError:
            return self._default_delivery_range_meters

        value = document.get("value")
        if value is None:
            return self._default_delivery_range_meters
        return float(value)

    async def fetch_candidates(self, requester_location: GeoPoint, radius_meters: float) -> List[Business]:
        """Range-query businesses inside the bounding box around the requester."""
        box = bounding_box(requester_location, radius_meters)
        rows = await self._storage.query_range(REF_BUSINESS, GEO_POINT_FIELD, box.southwest, box.northeast)

        candidates: List[Business] = []
        for doc_id, document in rows:
            try:
                business = Business.from_document(doc_id, document)
            except (ValidationError, KeyError, ValueError) as exc:
                logger.warning("Skipping malformed business %s: %s", doc_id, exc)
                continue
            # The store orders geo points by latitude first, so the range
            # query alone does not bound longitude.
            if box.contains(business.location.geo_point):
                candidates.append(business)
        return candidates

    async def find_available(
        self,
        requester_location: GeoPoint,
        now: Optional[datetime] = None,
    ) -> List[BusinessView]:
        """
        Resolve every business eligible to serve ``requester_location``.

        Returns:
            Public business views in storage order; empty when none qualify
        """
        radius = await self.common_delivery_range()
        logger.info("Availability for %s within %.0f m", requester_location, radius)

        candidates = await self.fetch_candidates(requester_location, radius)
        now = now or pendulum.now("UTC")

        result = self._resolver.resolve(
            candidates=candidates,
            requester_location=requester_location,
            common_delivery_range_meters=radius,
            now=now,
        )
        logger.info("%d candidate(s), %d available", len(candidates), len(result))
        return result
