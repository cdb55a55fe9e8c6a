"""Restaurant data models returned by the data store."""

from typing import Optional

from pydantic import BaseModel, Field


class Restaurant(BaseModel):
    """Core venue profile."""
    id: str
    name: str
    description: str = ""
    cuisine: str = ""
    area: str = ""
    address: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None
    owner_email: Optional[str] = None
    atmosphere: str = ""
    rating: Optional[float] = None
    timezone: Optional[str] = None


class MenuItem(BaseModel):
    """Single dish on the menu."""
    name: str
    description: str = ""
    price: float = Field(ge=0)
    category: str = "Main"
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    available: bool = True


class TableType(BaseModel):
    """A bookable category of table with its price and seating capacity."""
    name: str
    price: float = Field(default=0, ge=0)
    capacity: int = Field(gt=0)
    description: str = ""


class TableInventory(BaseModel):
    """How many physical tables exist for a table type."""
    table_type: str
    total_tables: int = Field(ge=0)


class OpeningHours(BaseModel):
    """Opening window for one weekday (0 = Monday).

    ``close_time`` earlier than ``open_time`` means the venue closes after midnight.
    """
    weekday: int = Field(ge=0, le=6)
    open_time: str = "00:00"
    close_time: str = "00:00"
    is_closed: bool = False


class TransferOption(BaseModel):
    """Pickup service from a hotel or area to the restaurant."""
    area: str
    price_4_or_less: float = Field(ge=0)
    price_5_to_8: float = Field(ge=0)
    description: str = ""
