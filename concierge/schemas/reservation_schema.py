"""Reservation and availability data models."""

import re
from datetime import date as date_cls
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

_EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$")
_PHONE_DIGITS = (7, 15)


class BookingDetails(BaseModel):
    """Date, time and party size derived from the current slots."""
    date: Optional[str] = None
    time: Optional[str] = None
    party_size: Optional[int] = Field(default=None, gt=0)
    table_type: Optional[str] = None

    def is_complete(self) -> bool:
        return self.date is not None and self.time is not None and self.party_size is not None


class AvailabilityReason(str, Enum):
    """Why a check came back the way it did."""
    AVAILABLE = "available"
    SUBSTITUTED = "substituted"
    CLOSED = "closed"
    OUTSIDE_HOURS = "outside_hours"
    FULLY_BOOKED_DATE = "fully_booked_date"
    NO_CAPACITY = "no_capacity"
    FULLY_BOOKED_TIME = "fully_booked_time"


class TableOption(BaseModel):
    """A table type that can seat the party at the requested slot."""
    table_type: str
    price: float = 0
    capacity: int


class AvailabilityResult(BaseModel):
    """Availability verdict for one date/time/party size."""
    available: bool
    table_options: list[TableOption] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    message: str = ""
    reason: AvailabilityReason = AvailabilityReason.AVAILABLE
    requested_table_type: Optional[str] = None


class ReservationPayload(BaseModel):
    """Fully validated reservation handed to the data store.

    Construct with ``ReservationPayload.model_validate(data, context={"table_types": [...]})``
    so the table type is checked against the restaurant's configuration.
    """
    restaurant_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=2)
    customer_email: str
    customer_phone: str
    date: str
    time: str
    party_size: int = Field(gt=0)
    table_type: str = Field(min_length=1)
    celebration_type: Optional[str] = None
    cake: bool = False
    cake_price: Optional[float] = None
    flowers: bool = False
    flowers_price: Optional[float] = None
    hotel_name: Optional[str] = None
    special_requests: Optional[str] = None

    @field_validator("customer_name", "customer_email", "customer_phone", "table_type", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("customer_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError(f"invalid email address: {value!r}")
        return value.lower()

    @field_validator("customer_phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        digits = re.sub(r"[^\d]", "", value)
        if not _PHONE_DIGITS[0] <= len(digits) <= _PHONE_DIGITS[1]:
            raise ValueError(f"invalid phone number: {value!r}")
        return value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        date_cls.fromisoformat(value)
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        datetime.strptime(value, "%H:%M")
        return value

    @field_validator("table_type")
    @classmethod
    def _check_table_type(cls, value: str, info: ValidationInfo) -> str:
        configured = (info.context or {}).get("table_types")
        if not configured:
            return value
        for name in configured:
            if name.lower() == value.lower():
                return name
        raise ValueError(f"unknown table type {value!r}; expected one of {list(configured)}")


class ReservationConfirmation(BaseModel):
    """Identifier returned by the data store after a successful insert."""
    reservation_id: int
    created_at: Optional[datetime] = None
