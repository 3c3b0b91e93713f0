"""
State machine for delivery partnerships between OSD users and businesses.

One machine exists per (user, business) pair: NONE -> PENDING -> ACCEPTED or
REJECTED, both terminal. Its state is materialized as the pair's entries in
the two partner lists plus the audit record; the decisions here are pure and
the coordinator carries them out against storage.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import ConflictError, InvalidTransitionError
from .models import (
    Business,
    DeliveryPartner,
    PartnerBusiness,
    PartnershipRequest,
    PartnershipStatus,
    User,
)


@dataclass(frozen=True)
class Transition:
    """
    Aggregate state implied by an audit record's status.

    ``user_entry`` None means the pair must not appear in the user's list;
    ``business_entry`` None means the business's list is left untouched.
    """
    request_id: str
    user_id: str
    business_ref_id: str
    status: PartnershipStatus
    user_entry: Optional[PartnerBusiness]
    business_entry: Optional[DeliveryPartner]


class RelationshipStateMachine:
    """Validates partnership transitions and describes their effects."""

    def request_partnership(
        self,
        user: User,
        business: Business,
        *,
        request_type: int = 0,
        user_snapshot: Optional[Dict[str, Any]] = None,
        business_snapshot: Optional[Dict[str, Any]] = None,
    ) -> PartnershipRequest:
        """
        Open a new PENDING request for the pair.

        Raises:
            ConflictError: If the user already holds a PENDING or ACCEPTED
                entry for this business
        """
        existing = user.find_partner(business.business_ref_id)
        if existing is not None and existing.status.is_active:
            raise ConflictError(
                f"User {user.user_id} already has a {existing.status.value} "
                f"partnership with business {business.business_ref_id}"
            )

        return PartnershipRequest(
            request_id="",
            business_ref_id=business.business_ref_id,
            user_id=user.user_id,
            status=PartnershipStatus.PENDING,
            request_type=request_type,
            business_snapshot=dict(business_snapshot or {}),
            user_snapshot=dict(user_snapshot or {}),
        )

    def accept(self, request: PartnershipRequest) -> Transition:
        """Move a PENDING request to ACCEPTED in the record and both lists."""
        self._ensure_pending(request, PartnershipStatus.ACCEPTED)
        return self.settled_state(request, PartnershipStatus.ACCEPTED)

    def reject(self, request: PartnershipRequest) -> Transition:
        """
        Move a PENDING request to REJECTED.

        The user's entry is removed entirely so the user may request again;
        the business never had an entry for a request it did not accept.
        """
        self._ensure_pending(request, PartnershipStatus.REJECTED)
        return self.settled_state(request, PartnershipStatus.REJECTED)

    @staticmethod
    def settled_state(
        request: PartnershipRequest,
        status: Optional[PartnershipStatus] = None,
    ) -> Transition:
        """Describe the aggregate state matching ``status`` (default: the record's)."""
        status = status or request.status
        user_entry: Optional[PartnerBusiness] = None
        business_entry: Optional[DeliveryPartner] = None

        if status is PartnershipStatus.PENDING:
            user_entry = PartnerBusiness(request.business_ref_id, PartnershipStatus.PENDING)
        elif status is PartnershipStatus.ACCEPTED:
            user_entry = PartnerBusiness(request.business_ref_id, PartnershipStatus.ACCEPTED)
            business_entry = DeliveryPartner(request.user_id, PartnershipStatus.ACCEPTED)

        return Transition(
            request_id=request.request_id,
            user_id=request.user_id,
            business_ref_id=request.business_ref_id,
            status=status,
            user_entry=user_entry,
            business_entry=business_entry,
        )

    @staticmethod
    def _ensure_pending(request: PartnershipRequest, target: PartnershipStatus) -> None:
        if request.status is not PartnershipStatus.PENDING:
            raise InvalidTransitionError(
                f"Request {request.request_id} is {request.status.value}, "
                f"cannot move to {target.value}"
            )
