"""
Applies partnership transitions across the audit record and both aggregates.

Write ordering:
- request: the user's partner list is claimed first with an atomic
  append-if-absent (the duplicate guard), then the audit record is created;
  a failed record write releases the claim again.
- accept/reject: the audit record moves out of PENDING first with a
  compare-and-set. From then on the record is authoritative and
  ``reconcile`` can re-apply the aggregate side if a later write failed.

Notifications go out only after all writes succeeded, as background tasks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from ..domain.exceptions import (
    ConflictError,
    InvalidTransitionError,
    StorageUnavailableError,
    ValidationError,
)
from ..domain.models import (
    ACTIVE_STATUSES,
    FIELD_BUSINESS_PARTNERS,
    FIELD_BUSINESS_REF_ID,
    FIELD_STATUS,
    FIELD_USER_ID,
    FIELD_USER_PARTNERS,
    REF_BUSINESS,
    REF_NOTIFICATION,
    REF_USER,
    Business,
    PartnershipRequest,
    PartnershipStatus,
    User,
    osb_account,
    osd_account,
)
from ..domain.relationship import RelationshipStateMachine, Transition
from .gateways import Notification, StorageGateway
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class RelationshipCoordinator:
    """
    Orchestrates storage writes for the partnership state machine.

    Errors raised to callers: ConflictError, InvalidTransitionError,
    NotFoundError, ValidationError and StorageUnavailableError (never
    retried here).
    """

    def __init__(
        self,
        storage: StorageGateway,
        dispatcher: NotificationDispatcher,
        state_machine: Optional[RelationshipStateMachine] = None,
    ) -> None:
        self._storage = storage
        self._dispatcher = dispatcher
        self._state_machine = state_machine or RelationshipStateMachine()

    async def _load_user(self, user_id: str) -> User:
        return User.from_document(user_id, await self._storage.get_document(REF_USER, user_id))

    async def _load_business(self, business_ref_id: str) -> Business:
        document = await self._storage.get_document(REF_BUSINESS, business_ref_id)
        return Business.from_document(business_ref_id, document)

    async def _load_request(self, request_id: str, user_id: str, business_ref_id: str) -> PartnershipRequest:
        document = await self._storage.get_document(REF_NOTIFICATION, request_id)
        request = PartnershipRequest.from_document(request_id, document)
        if request.user_id != user_id or request.business_ref_id != business_ref_id:
            raise ValidationError(
                f"Request {request_id} does not belong to user {user_id} and business {business_ref_id}"
            )
        return request

    async def request_partnership(
        self,
        business_ref_id: str,
        user_id: str,
        *,
        request_type: int = 0,
        business_snapshot: Optional[Mapping[str, Any]] = None,
        user_snapshot: Optional[Mapping[str, Any]] = None,
    ) -> PartnershipRequest:
        """
        Create a PENDING partnership request from an OSD user to a business.

        Returns:
            The stored request, with its id assigned

        Raises:
            ConflictError: If the pair already has a PENDING or ACCEPTED relationship
        """
        user = await self._load_user(user_id)
        business = await self._load_business(business_ref_id)
        request = self._state_machine.request_partnership(
            user,
            business,
            request_type=request_type,
            user_snapshot=user_snapshot,
            business_snapshot=business_snapshot,
        )
        entry = self._state_machine.settled_state(request).user_entry

        claimed = await self._storage.append_if_absent(
            REF_USER,
            user_id,
            FIELD_USER_PARTNERS,
            entry.to_document(),
            key=FIELD_BUSINESS_REF_ID,
            blocking_values=[status.value for status in ACTIVE_STATUSES],
        )
        if not claimed:
            raise ConflictError(f"User {user_id} already has an active partnership with {business_ref_id}")

        try:
            request.request_id = await self._storage.create_document(REF_NOTIFICATION, request.to_document())
        except (StorageUnavailableError, asyncio.CancelledError):
            await self._release_claim(user_id, business_ref_id)
            raise

        logger.info("Partnership request %s: %s -> %s", request.request_id, user_id, business_ref_id)
        self._dispatcher.dispatch(
            osb_account(business_ref_id),
            Notification(
                title="Delivery Partnership Request",
                body=f"{user.display_name or user_id} wants to be your delivery partner",
            ),
        )
        return request

    async def _release_claim(self, user_id: str, business_ref_id: str) -> None:
        try:
            await self._storage.remove_matching(
                REF_USER, user_id, FIELD_USER_PARTNERS, FIELD_BUSINESS_REF_ID, business_ref_id
            )
        except StorageUnavailableError as exc:
            logger.error(
                "Could not release pending entry %s for user %s: %s",
                business_ref_id, user_id, exc,
            )

    async def accept(self, user_id: str, business_ref_id: str, request_id: str) -> PartnershipRequest:
        """
        Accept a PENDING request on behalf of the business.

        Raises:
            InvalidTransitionError: If the request is not PENDING
        """
        request = await self._load_request(request_id, user_id, business_ref_id)
        transition = self._state_machine.accept(request)
        user = await self._load_user(user_id)
        business = await self._load_business(business_ref_id)

        await self._commit_status(request, transition.status)
        await self._apply(transition)

        self._dispatcher.dispatch(
            osd_account(user.user_id),
            Notification(
                title="Request Accepted",
                body=f"{business.display_name} accepted your delivery partnership request",
            ),
        )
        return request

    async def reject(
        self,
        user_id: str,
        business_ref_id: str,
        request_id: str,
        business_display_name: Optional[str] = None,
    ) -> PartnershipRequest:
        """
        Reject a PENDING request on behalf of the business.

        The user's entry is removed; the business's list is not touched.
        """
        request = await self._load_request(request_id, user_id, business_ref_id)
        transition = self._state_machine.reject(request)
        user = await self._load_user(user_id)
        business = await self._load_business(business_ref_id)
        business_display_name = business_display_name or business.display_name

        await self._commit_status(request, transition.status)
        await self._apply(transition)

        self._dispatcher.dispatch(
            osd_account(user.user_id),
            Notification(
                title="Request Rejected",
                body=f"{business_display_name} rejected your delivery partnership request",
            ),
        )
        return request

    async def reconcile(self, request_id: str) -> Optional[Transition]:
        """
        Re-apply the aggregate state implied by a request's recorded status.

        Idempotent; repairs partner lists left behind by an interrupted
        accept or reject. A rejected request superseded by a newer active
        request for the same pair is left alone and None is returned.
        """
        document = await self._storage.get_document(REF_NOTIFICATION, request_id)
        request = PartnershipRequest.from_document(request_id, document)

        if request.status is PartnershipStatus.REJECTED and await self._has_active_sibling(request):
            logger.info("Request %s is superseded by a newer request, nothing to reconcile", request_id)
            return None

        transition = self._state_machine.settled_state(request)
        await self._apply(transition)
        logger.info("Reconciled request %s as %s", request_id, transition.status.value)
        return transition

    async def _has_active_sibling(self, request: PartnershipRequest) -> bool:
        account = request.account_key
        rows = await self._storage.query_range(REF_NOTIFICATION, "account", account, account)
        active = {status.value for status in ACTIVE_STATUSES}
        return any(
            doc_id != request.request_id and document.get(FIELD_STATUS) in active
            for doc_id, document in rows
        )

    async def _commit_status(self, request: PartnershipRequest, status: PartnershipStatus) -> None:
        committed = await self._storage.compare_and_set(
            REF_NOTIFICATION,
            request.request_id,
            FIELD_STATUS,
            PartnershipStatus.PENDING.value,
            status.value,
        )
        if not committed:
            raise InvalidTransitionError(f"Request {request.request_id} is no longer PENDING")
        request.status = status
        logger.info("Request %s is now %s", request.request_id, status.value)

    async def _apply(self, transition: Transition) -> None:
        try:
            if transition.user_entry is None:
                await self._storage.remove_matching(
                    REF_USER,
                    transition.user_id,
                    FIELD_USER_PARTNERS,
                    FIELD_BUSINESS_REF_ID,
                    transition.business_ref_id,
                )
            else:
                await self._storage.replace_matching(
                    REF_USER,
                    transition.user_id,
                    FIELD_USER_PARTNERS,
                    FIELD_BUSINESS_REF_ID,
                    transition.business_ref_id,
                    transition.user_entry.to_document(),
                    append_missing=True,
                )

            if transition.business_entry is not None:
                await self._storage.replace_matching(
                    REF_BUSINESS,
                    transition.business_ref_id,
                    FIELD_BUSINESS_PARTNERS,
                    FIELD_USER_ID,
                    transition.user_id,
                    transition.business_entry.to_document(),
                    append_missing=True,
                )
        except StorageUnavailableError:
            logger.error(
                "Partner lists for request %s lag behind status %s; reconcile required",
                transition.request_id, transition.status.value,
            )
            raise
