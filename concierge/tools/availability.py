"""
Table availability checks against the restaurant data store.

Given a date, time, party size and optional table type, decides which
table types can take the party, surfaces substitutions explicitly, and
probes nearby times inside the day's opening hours when nothing is free.
"""

import logging
from datetime import date as date_cls
from datetime import datetime
from typing import Optional

from concierge.config import settings
from concierge.conversation.datetime_parsing import Clock, local_clock
from concierge.schemas.reservation_schema import (
    AvailabilityReason,
    AvailabilityResult,
    TableOption,
)
from concierge.schemas.restaurant_schema import OpeningHours, TableType
from concierge.tools.data_store import RestaurantDataStore
from concierge.utils import (
    format_date_for_display,
    format_time_for_display,
    minutes_of_day,
    time_from_minutes,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


# Slot the guest has to change after an unavailable verdict; anything else means time.
_FIELD_TO_CHANGE = {
    AvailabilityReason.CLOSED: "date",
    AvailabilityReason.FULLY_BOOKED_DATE: "date",
    AvailabilityReason.NO_CAPACITY: "party_size",
}


def field_to_change(reason: AvailabilityReason) -> str:
    return _FIELD_TO_CHANGE.get(reason, "time")


def hours_for_weekday(hours: list[OpeningHours], weekday: int) -> Optional[OpeningHours]:
    return next((h for h in hours if h.weekday == weekday), None)


def is_within_hours(time: str, hours: OpeningHours) -> bool:
    """True when ``time`` falls inside the opening window.

    A close time earlier than the open time means the window runs past
    midnight. Closing time itself is not bookable.
    """
    if hours.is_closed:
        return False
    t = minutes_of_day(time)
    open_m, close_m = minutes_of_day(hours.open_time), minutes_of_day(hours.close_time)
    if open_m == close_m:
        return True
    if close_m < open_m:
        return t >= open_m or t < close_m
    return open_m <= t < close_m


def _options(types: list[TableType]) -> list[TableOption]:
    return sorted(
        (TableOption(table_type=t.name, price=t.price, capacity=t.capacity) for t in types),
        key=lambda o: (o.price, o.capacity),
    )


class AvailabilityChecker:
    """Availability verdicts and alternative times for one restaurant slot."""

    def __init__(
        self,
        store: RestaurantDataStore,
        offsets_minutes: Optional[tuple[int, ...]] = None,
        max_alternatives: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        cfg = settings.orchestration
        self._store = store
        self._clock = clock or local_clock()
        offsets = offsets_minutes or cfg.alternative_offsets_minutes
        # Closest first; earlier before later on equal distance.
        self._offsets = sorted(offsets, key=lambda o: (abs(o), o))
        self._max_alternatives = max_alternatives or cfg.max_alternatives

    async def check(
        self,
        restaurant_id: str,
        date: str,
        time: str,
        party_size: int,
        table_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AvailabilityResult:
        """Verdict for one slot.

        ``now`` is the restaurant wall clock, defaulting to the checker clock.
        """
        now = now or self._clock()
        when = f"{format_date_for_display(date)} at {format_time_for_display(time)}"

        if date in await self._store.get_fully_booked_dates(restaurant_id):
            logger.info("Availability %s %s: date fully booked", date, time)
            return AvailabilityResult(
                available=False,
                reason=AvailabilityReason.FULLY_BOOKED_DATE,
                requested_table_type=table_type,
                message=f"I'm sorry, we're fully booked on {format_date_for_display(date)}.",
            )

        weekday = date_cls.fromisoformat(date).weekday()
        day_hours = hours_for_weekday(await self._store.get_restaurant_hours(restaurant_id), weekday)
        if day_hours is None or day_hours.is_closed:
            return AvailabilityResult(
                available=False,
                reason=AvailabilityReason.CLOSED,
                requested_table_type=table_type,
                message=f"I'm sorry, we're closed on {format_date_for_display(date)}.",
            )

        all_types = await self._store.get_table_types(restaurant_id)
        qualifying = [t for t in all_types if t.capacity >= party_size]
        if not qualifying:
            largest = max((t.capacity for t in all_types), default=0)
            logger.info("Availability: no table seats %d (largest %d)", party_size, largest)
            return AvailabilityResult(
                available=False,
                reason=AvailabilityReason.NO_CAPACITY,
                requested_table_type=table_type,
                message=(
                    f"I'm sorry, our largest table seats {largest} guests, "
                    f"so we can't seat a party of {party_size}."
                ),
            )

        requested = None
        if table_type:
            requested = next((t for t in all_types if t.name.lower() == table_type.lower()), None)
        wanted = [requested] if requested in qualifying else qualifying

        if not is_within_hours(time, day_hours):
            alternatives = await self._probe(restaurant_id, date, time, wanted, day_hours, now)
            message = (
                f"We're open from {format_time_for_display(day_hours.open_time)} to "
                f"{format_time_for_display(day_hours.close_time)} on that day, "
                f"so {format_time_for_display(time)} isn't possible."
            )
            if alternatives:
                message += f" The closest times I can offer are {', '.join(alternatives)}."
            return AvailabilityResult(
                available=False,
                reason=AvailabilityReason.OUTSIDE_HOURS,
                alternatives=alternatives,
                requested_table_type=table_type,
                message=message,
            )

        free = await self._free_types(restaurant_id, date, time, qualifying)

        if requested is not None and requested in free:
            return AvailabilityResult(
                available=True,
                table_options=_options([requested]),
                requested_table_type=table_type,
                message=f"Good news, we have a {requested.name} table for {party_size} on {when}.",
            )

        if requested is not None and free:
            names = ", ".join(o.table_type for o in _options(free))
            reason = "can't seat" if requested not in qualifying else "has no space for"
            logger.info("Availability: %s unavailable, offering %s", requested.name, names)
            return AvailabilityResult(
                available=True,
                table_options=_options(free),
                reason=AvailabilityReason.SUBSTITUTED,
                requested_table_type=table_type,
                message=(
                    f"Our {requested.name} seating {reason} a party of {party_size} on {when}, "
                    f"but we do have: {names}."
                ),
            )

        if requested is None and free:
            return AvailabilityResult(
                available=True,
                table_options=_options(free),
                requested_table_type=table_type,
                message=f"Good news, we have availability for {party_size} on {when}.",
            )

        alternatives = await self._probe(restaurant_id, date, time, wanted, day_hours, now)
        logger.info("Availability %s %s: none free, alternatives %s", date, time, alternatives)
        if alternatives:
            message = (
                f"I'm sorry, we're fully booked on {when}. "
                f"I can offer {', '.join(alternatives)} instead."
            )
        else:
            message = f"I'm sorry, we're fully booked on {when} and have nothing close to that time."
        return AvailabilityResult(
            available=False,
            reason=AvailabilityReason.FULLY_BOOKED_TIME,
            alternatives=alternatives,
            requested_table_type=table_type,
            message=message,
        )

    async def _free_types(
        self, restaurant_id: str, date: str, time: str, types: list[TableType]
    ) -> list[TableType]:
        free = []
        for t in types:
            if await self._store.is_table_available(restaurant_id, t.name, date, time):
                free.append(t)
        return free

    async def _probe(
        self,
        restaurant_id: str,
        date: str,
        time: str,
        types: list[TableType],
        day_hours: OpeningHours,
        now: datetime,
    ) -> list[str]:
        """Nearby bookable times for any of ``types``, closest first.

        On today's date only times after ``now`` are offered.
        """
        base = minutes_of_day(time)
        earliest = now.hour * 60 + now.minute if date == now.date().isoformat() else -1
        found: list[str] = []
        for offset in self._offsets:
            candidate = base + offset
            if not 0 <= candidate < MINUTES_PER_DAY or candidate <= earliest:
                continue
            candidate_time = time_from_minutes(candidate)
            if not is_within_hours(candidate_time, day_hours):
                continue
            if await self._free_types(restaurant_id, date, candidate_time, types):
                found.append(format_time_for_display(candidate_time))
                if len(found) >= self._max_alternatives:
                    break
        return found
