"""
Transport-agnostic public operations.

Every operation returns a response mapping with a ``status`` code. Errors
become structured responses carrying a machine-readable ``reason``; the text
of lower-level errors is logged, never returned.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OnSpotError,
    StorageUnavailableError,
    ValidationError,
)
from .domain.models import FIELD_BUSINESS_REF_ID, FIELD_USER_ID, GeoPoint
from .services.availability_service import AvailabilityService
from .services.business_registry import BusinessRegistry, RegistrationResult
from .services.gateways import NotificationGateway, StorageGateway
from .services.notifications import NotificationDispatcher
from .services.relationship_coordinator import RelationshipCoordinator

logger = logging.getLogger(__name__)

Response = Dict[str, Any]

STATUS_OK = 200
STATUS_NO_CONTENT = 204
STATUS_BAD_REQUEST = 400
STATUS_CONFLICT = 401
STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500
STATUS_UNAVAILABLE = 503
STATUS_TIMEOUT = 504

# (status, client-facing message) per error type, most specific first
_ERROR_RESPONSES = [
    (ValidationError, STATUS_BAD_REQUEST, "Invalid request."),
    (ConflictError, STATUS_CONFLICT, "Already exists."),
    (InvalidTransitionError, STATUS_BAD_REQUEST, "Request is no longer pending."),
    (NotFoundError, STATUS_NOT_FOUND, "Not found."),
    (StorageUnavailableError, STATUS_UNAVAILABLE, "Service temporarily unavailable."),
]


def error_response(error: OnSpotError) -> Response:
    for error_type, status, message in _ERROR_RESPONSES:
        if isinstance(error, error_type):
            return {"status": status, "error": message, "reason": error.reason}
    return {"status": STATUS_UNAVAILABLE, "error": "Service temporarily unavailable.", "reason": error.reason}


class OnSpotApi:
    """
    Entry points for availability queries, partnerships and business profiles.

    Each call is an independent unit of work bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        storage: StorageGateway,
        notifier: NotificationGateway,
        *,
        default_delivery_range_meters: float = 5000.0,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.dispatcher = NotificationDispatcher(notifier)
        self.availability_service = AvailabilityService(
            storage, default_delivery_range_meters=default_delivery_range_meters
        )
        self.coordinator = RelationshipCoordinator(storage, self.dispatcher)
        self.registry = BusinessRegistry(storage)
        self.timeout_seconds = timeout_seconds

    async def _run(self, operation: str, call: Callable[[], Awaitable[Response]]) -> Response:
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("%s exceeded the %.1fs deadline", operation, self.timeout_seconds)
            return {"status": STATUS_TIMEOUT, "error": "Request timed out.", "reason": "deadline_exceeded"}
        except OnSpotError as exc:
            logger.warning("%s failed: %s", operation, exc)
            return error_response(exc)
        except Exception:
            logger.exception("%s failed unexpectedly", operation)
            return {"status": STATUS_INTERNAL_ERROR, "error": "Something went wrong.", "reason": "internal_error"}

    async def availability(
        self,
        latitude: float,
        longitude: float,
        now: Optional[datetime] = None,
    ) -> Response:
        """Businesses able to serve the requester; 204 when there are none."""

        async def call() -> Response:
            try:
                location = GeoPoint(latitude=float(latitude), longitude=float(longitude))
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Invalid requester location: {exc}") from exc
            views = await self.availability_service.find_available(location, now=now)
            return {
                "status": STATUS_OK if views else STATUS_NO_CONTENT,
                "businesses": [view.to_dict() for view in views],
            }

        return await self._run("availability", call)

    async def partnership_request(
        self,
        business: Mapping[str, Any],
        user: Mapping[str, Any],
        request_type: int = 0,
    ) -> Response:
        """
        Send a delivery partnership request from an OSD user to a business.

        ``business`` and ``user`` are the snapshots the apps send; they are
        stored on the request record as-is.
        """

        async def call() -> Response:
            business_ref_id = business.get(FIELD_BUSINESS_REF_ID)
            user_id = user.get(FIELD_USER_ID)
            if not business_ref_id or not user_id:
                raise ValidationError("businessRefId and userId are required")
            request = await self.coordinator.request_partnership(
                business_ref_id,
                user_id,
                request_type=request_type,
                business_snapshot=business,
                user_snapshot=user,
            )
            return {"status": STATUS_OK, "requestId": request.request_id}

        return await self._run("partnership_request", call)

    async def accept_partnership(self, user_id: str, business_ref_id: str, request_id: str) -> Response:
        async def call() -> Response:
            await self.coordinator.accept(user_id, business_ref_id, request_id)
            return {"status": STATUS_OK}

        return await self._run("accept_partnership", call)

    async def reject_partnership(
        self,
        user_id: str,
        business_ref_id: str,
        request_id: str,
        business_display_name: Optional[str] = None,
    ) -> Response:
        async def call() -> Response:
            await self.coordinator.reject(user_id, business_ref_id, request_id, business_display_name)
            return {"status": STATUS_OK}

        return await self._run("reject_partnership", call)

    async def reconcile_partnership(self, request_id: str) -> Response:
        async def call() -> Response:
            transition = await self.coordinator.reconcile(request_id)
            return {
                "status": STATUS_OK,
                "applied": transition.status.value if transition else None,
            }

        return await self._run("reconcile_partnership", call)

    async def business_availability(self, postal_code: str) -> Response:
        """Whether the platform operates at a postal code."""

        async def call() -> Response:
            available = await self.registry.check_launch_region(postal_code)
            return {
                "status": STATUS_OK if available else STATUS_NO_CONTENT,
                "isAvailable": available,
            }

        return await self._run("business_availability", call)

    async def create_business(self, data: Mapping[str, Any]) -> Response:
        async def call() -> Response:
            return self._registration_response(await self.registry.create_business(data))

        return await self._run("create_business", call)

    async def update_business(self, business_ref_id: str, data: Mapping[str, Any]) -> Response:
        async def call() -> Response:
            return self._registration_response(await self.registry.update_business(business_ref_id, data))

        return await self._run("update_business", call)

    @staticmethod
    def _registration_response(result: RegistrationResult) -> Response:
        if not result.available:
            return {"status": STATUS_NO_CONTENT, "isAvailable": False}
        return {
            "status": STATUS_OK,
            "businessId": result.business_id,
            "businessRefId": result.business_ref_id,
        }

    async def close(self) -> None:
        """Wait for outstanding notifications."""
        await self.dispatcher.drain()
