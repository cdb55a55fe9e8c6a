"""
Restaurant data store boundary.

The orchestration core never talks SQL. Everything it needs from the
restaurant database goes through this async protocol; the in-memory
implementation in ``memory_store`` backs tests and local runs.
"""

from typing import Optional, Protocol, runtime_checkable

from concierge.schemas.reservation_schema import ReservationConfirmation, ReservationPayload
from concierge.schemas.restaurant_schema import (
    MenuItem,
    OpeningHours,
    Restaurant,
    TableInventory,
    TableType,
    TransferOption,
)


@runtime_checkable
class RestaurantDataStore(Protocol):
    """Async operations the agents need from the restaurant database.

    Implementations raise ``RestaurantNotFoundError`` for unknown ids,
    ``ReservationConflictError`` when an insert loses a race for the last
    table, and ``DataStoreError`` for anything else.
    """

    async def get_restaurant(self, restaurant_id: str) -> Restaurant: ...

    async def get_menu_items(self, restaurant_id: str) -> list[MenuItem]: ...

    async def get_table_types(self, restaurant_id: str) -> list[TableType]: ...

    async def get_table_inventory(self, restaurant_id: str) -> list[TableInventory]: ...

    async def get_restaurant_hours(self, restaurant_id: str) -> list[OpeningHours]: ...

    async def get_fully_booked_dates(self, restaurant_id: str) -> list[str]: ...

    async def is_table_available(
        self,
        restaurant_id: str,
        table_type: str,
        date: str,
        time: Optional[str] = None,
    ) -> bool: ...

    async def create_reservation(self, payload: ReservationPayload) -> ReservationConfirmation: ...

    async def get_transfer_options(self, restaurant_id: str) -> list[TransferOption]: ...
