"""
In-memory restaurant data store.

Backs tests and local development. In production this would be replaced
by a database-backed implementation of ``RestaurantDataStore`` whose
create operation runs the availability count and the insert in a single
transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from concierge.errors import DataStoreError, ReservationConflictError, RestaurantNotFoundError
from concierge.schemas.reservation_schema import ReservationConfirmation, ReservationPayload
from concierge.schemas.restaurant_schema import (
    MenuItem,
    OpeningHours,
    Restaurant,
    TableInventory,
    TableType,
    TransferOption,
)
from concierge.utils import minutes_of_day

logger = logging.getLogger(__name__)


@dataclass
class _RestaurantRecord:
    restaurant: Restaurant
    menu: list[MenuItem] = field(default_factory=list)
    table_types: list[TableType] = field(default_factory=list)
    inventory: dict[str, int] = field(default_factory=dict)
    hours: list[OpeningHours] = field(default_factory=list)
    fully_booked_dates: set[str] = field(default_factory=set)
    transfers: list[TransferOption] = field(default_factory=list)


class InMemoryRestaurantStore:
    """Dict-backed ``RestaurantDataStore`` with an atomic check-then-insert.

    ``min_gap_minutes`` widens the window in which two reservations for the
    same table type count against each other. With the default of 0 only
    reservations at exactly the same time compete.
    """

    def __init__(self, min_gap_minutes: int = 0, first_reservation_id: int = 1) -> None:
        self._restaurants: dict[str, _RestaurantRecord] = {}
        self._reservations: list[dict] = []
        self._first_id = first_reservation_id
        self._next_id = first_reservation_id
        self._min_gap = min_gap_minutes
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Seeding
    # ------------------------------------------------------------------ #

    def add_restaurant(
        self,
        restaurant: Restaurant,
        *,
        table_types: list[TableType],
        inventory: dict[str, int],
        hours: list[OpeningHours],
        menu: Optional[list[MenuItem]] = None,
        fully_booked_dates: Optional[list[str]] = None,
        transfers: Optional[list[TransferOption]] = None,
    ) -> None:
        self._restaurants[restaurant.id] = _RestaurantRecord(
            restaurant=restaurant,
            menu=list(menu or []),
            table_types=list(table_types),
            inventory=dict(inventory),
            hours=list(hours),
            fully_booked_dates=set(fully_booked_dates or []),
            transfers=list(transfers or []),
        )

    def add_existing_reservation(
        self, restaurant_id: str, table_type: str, date: str, time: str, party_size: int = 2
    ) -> int:
        """Record a reservation without availability checks (fixture helper)."""
        reservation_id = self._next_id
        self._next_id += 1
        self._reservations.append({
            "reservation_id": reservation_id,
            "restaurant_id": restaurant_id,
            "table_type": table_type,
            "date": date,
            "time": time,
            "party_size": party_size,
        })
        return reservation_id

    def reservations(self) -> list[dict]:
        return [dict(r) for r in self._reservations]

    def reset(self) -> None:
        """Clear all reservations. Used by test fixtures for isolation."""
        self._reservations.clear()
        self._next_id = self._first_id

    # ------------------------------------------------------------------ #
    # RestaurantDataStore
    # ------------------------------------------------------------------ #

    def _record(self, restaurant_id: str) -> _RestaurantRecord:
        try:
            return self._restaurants[restaurant_id]
        except KeyError:
            raise RestaurantNotFoundError(f"Restaurant {restaurant_id!r} not found") from None

    async def get_restaurant(self, restaurant_id: str) -> Restaurant:
        return self._record(restaurant_id).restaurant

    async def get_menu_items(self, restaurant_id: str) -> list[MenuItem]:
        return [item for item in self._record(restaurant_id).menu if item.available]

    async def get_table_types(self, restaurant_id: str) -> list[TableType]:
        return list(self._record(restaurant_id).table_types)

    async def get_table_inventory(self, restaurant_id: str) -> list[TableInventory]:
        record = self._record(restaurant_id)
        return [
            TableInventory(table_type=name, total_tables=total)
            for name, total in record.inventory.items()
        ]

    async def get_restaurant_hours(self, restaurant_id: str) -> list[OpeningHours]:
        return list(self._record(restaurant_id).hours)

    async def get_fully_booked_dates(self, restaurant_id: str) -> list[str]:
        return sorted(self._record(restaurant_id).fully_booked_dates)

    async def get_transfer_options(self, restaurant_id: str) -> list[TransferOption]:
        return list(self._record(restaurant_id).transfers)

    def _reserved_count(
        self, restaurant_id: str, table_type: str, date: str, time: Optional[str]
    ) -> int:
        window = max(self._min_gap, 1)
        count = 0
        for existing in self._reservations:
            if (
                existing["restaurant_id"] != restaurant_id
                or existing["table_type"].lower() != table_type.lower()
                or existing["date"] != date
            ):
                continue
            if time is None or abs(minutes_of_day(existing["time"]) - minutes_of_day(time)) < window:
                count += 1
        return count

    def _has_free_table(
        self, restaurant_id: str, table_type: str, date: str, time: Optional[str]
    ) -> bool:
        record = self._record(restaurant_id)
        total = next(
            (n for name, n in record.inventory.items() if name.lower() == table_type.lower()),
            0,
        )
        return self._reserved_count(restaurant_id, table_type, date, time) < total

    async def is_table_available(
        self,
        restaurant_id: str,
        table_type: str,
        date: str,
        time: Optional[str] = None,
    ) -> bool:
        if date in self._record(restaurant_id).fully_booked_dates:
            return False
        return self._has_free_table(restaurant_id, table_type, date, time)

    async def create_reservation(self, payload: ReservationPayload) -> ReservationConfirmation:
        async with self._lock:
            record = self._record(payload.restaurant_id)
            if not any(t.name.lower() == payload.table_type.lower() for t in record.table_types):
                raise DataStoreError(f"Unknown table type {payload.table_type!r}")
            if payload.date in record.fully_booked_dates or not self._has_free_table(
                payload.restaurant_id, payload.table_type, payload.date, payload.time
            ):
                logger.info(
                    "Reservation conflict: %s %s at %s %s",
                    payload.restaurant_id, payload.table_type, payload.date, payload.time,
                )
                raise ReservationConflictError(
                    f"No {payload.table_type} table left on {payload.date} at {payload.time}"
                )

            reservation_id = self._next_id
            self._next_id += 1
            self._reservations.append({
                "reservation_id": reservation_id,
                **payload.model_dump(),
            })

        logger.info(
            "Reservation %d created for %s on %s at %s",
            reservation_id, payload.customer_name, payload.date, payload.time,
        )
        return ReservationConfirmation(
            reservation_id=reservation_id,
            created_at=datetime.now(timezone.utc),
        )
