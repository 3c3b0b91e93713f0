"""
Eligibility pipeline deciding which nearby businesses can serve a customer.

Pure domain logic: the candidates are already range-queried from storage,
nothing here performs I/O.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from .geo import distance
from .models import Business, BusinessView, GeoPoint
from .time_window import is_within_window, window_weekday

EXCLUDED_CLOSED = "closed"
EXCLUDED_OUT_OF_RANGE = "out_of_range"
EXCLUDED_NO_HOURS = "no_operating_hours"
EXCLUDED_OUTSIDE_HOURS = "outside_operating_hours"
EXCLUDED_CLOSED_TODAY = "closed_today"


class AvailabilityResolver:
    """
    Filters candidate businesses down to those able to take an order now.

    Algorithm, short-circuiting on the first failing step per candidate:
    1. Open flag - an explicitly closed business is excluded
    2. Distance - excluded beyond the business's own delivery range, if any
    3. Passive open - enabled (or unset) means eligible regardless of hours
    4. Operating hours - ``now`` must fall in [opening, closing) on an opening day
    """

    def resolve(
        self,
        candidates: Iterable[Business],
        requester_location: GeoPoint,
        common_delivery_range_meters: float,
        now: datetime,
    ) -> List[BusinessView]:
        """
        Return the public views of all eligible candidates, in input order.

        Args:
            candidates: Businesses found by the bounding-box range query
            requester_location: Where the customer is
            common_delivery_range_meters: Platform-wide ceiling the candidate
                query was built from; not a per-business limit
            now: Current instant (timezone aware)

        Returns:
            List of BusinessView objects, empty when nothing qualifies
        """
        return [
            business.to_view()
            for business in candidates
            if self.exclusion_reason(business, requester_location, now) is None
        ]

    def exclusion_reason(
        self,
        business: Business,
        requester_location: GeoPoint,
        now: datetime,
    ) -> Optional[str]:
        """Return why a business is excluded, or None when it is eligible."""
        if not business.is_open:
            return EXCLUDED_CLOSED

        if business.delivery_range_meters is not None:
            if distance(business.location.geo_point, requester_location) > business.delivery_range_meters:
                return EXCLUDED_OUT_OF_RANGE

        if business.passive_open_enabled is None or business.passive_open_enabled:
            return None

        return self._operating_hours_reason(business, now)

    @staticmethod
    def _operating_hours_reason(business: Business, now: datetime) -> Optional[str]:
        opening = business.opening_time
        closing = business.closing_time
        if opening is None or closing is None:
            return EXCLUDED_NO_HOURS

        if not is_within_window(now, opening, closing):
            return EXCLUDED_OUTSIDE_HOURS

        if business.opening_days is not None:
            if window_weekday(now, opening, closing) not in business.opening_days:
                return EXCLUDED_CLOSED_TODAY

        return None
