"""Dynamic prompt construction for context-aware agent instructions."""

import json
from typing import Any, Optional

from concierge.config import settings
from concierge.conversation.structured_output import END_MARKER, START_MARKER
from concierge.schemas.reservation_schema import TableOption
from concierge.schemas.restaurant_schema import (
    MenuItem,
    OpeningHours,
    Restaurant,
    TableInventory,
    TableType,
    TransferOption,
)
from concierge.schemas.session_schema import CollectedSlots
from concierge.utils import format_price, format_time_for_display

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _price(amount: float) -> str:
    return format_price(amount, settings.restaurant.currency)


def build_slot_collection_prompt(missing_slots: list[str], collected: dict[str, Any]) -> str:
    """Build a dynamic instruction for the next slot to collect."""
    parts: list[str] = []
    if collected:
        parts.append("Information collected so far:")
        for key, value in collected.items():
            parts.append(f"  {key}: {value}")

    if missing_slots:
        parts.append(f"\nNow ask for their {missing_slots[0]}. Keep it natural and brief.")
    else:
        parts.append("\nAll details collected. Read them back and ask the guest to confirm.")

    return "\n".join(parts)


def build_table_options_prompt(options: list[TableOption]) -> str:
    """List the table types the guest can choose from."""
    lines = []
    for option in options:
        price = "no extra charge" if not option.price else _price(option.price)
        lines.append(f"- {option.table_type} (up to {option.capacity} guests, {price})")
    return "\n".join(lines)


def build_confirmation_prompt(
    restaurant: Restaurant, slots: CollectedSlots, add_on_prices: dict[str, float]
) -> str:
    """Ask the model to confirm in words and emit the structured reservation block."""
    block = {
        "restaurant": {"id": restaurant.id, "name": restaurant.name},
        "customer": {
            "name": slots.customer_name,
            "email": slots.customer_email,
            "phone": slots.customer_phone,
        },
        "reservation": {
            "date": slots.date,
            "time": slots.time,
            "partySize": slots.party_size,
            "tableType": slots.table_type,
        },
        "addOns": {
            "celebration": slots.celebration_type,
            "cake": bool(slots.cake),
            "flowers": bool(slots.flowers),
        },
        "transfer": {"needed": bool(slots.hotel_name), "hotel": slots.hotel_name},
        "specialRequests": slots.special_requests,
    }
    return (
        "The guest has confirmed the details below. Thank them in one sentence and say you're "
        "finalising the reservation now. Then append the reservation data exactly in this "
        f"format, with no other text after it:\n{START_MARKER}\n"
        f"{json.dumps(block, indent=2)}\n{END_MARKER}\n"
        f"Add-on prices: cake {_price(add_on_prices['cake'])}, "
        f"flowers {_price(add_on_prices['flowers'])}."
    )


def build_menu_prompt(
    grouped: dict[str, list[MenuItem]],
    dietary: Optional[str] = None,
    category: Optional[str] = None,
) -> str:
    if not grouped:
        if dietary:
            return f"MENU: there are no {dietary.replace('_', '-')} dishes on the menu."
        return "MENU: the menu is not available right now."
    heading = "MENU"
    if dietary:
        heading += f" ({dietary.replace('_', '-')} dishes only)"
    if category:
        heading += f", guest asked about {category}"
    lines = [f"{heading}:"]
    for cat, items in grouped.items():
        lines.append(f"{cat}:")
        for item in items:
            tags = [t for t, on in (
                ("vegan", item.is_vegan),
                ("vegetarian", item.is_vegetarian),
                ("gluten-free", item.is_gluten_free),
            ) if on]
            tag_text = f" [{', '.join(tags)}]" if tags else ""
            desc = f": {item.description}" if item.description else ""
            lines.append(f"  - {item.name} {_price(item.price)}{tag_text}{desc}")
    return "\n".join(lines)


def build_celebration_prompt(slots: CollectedSlots, add_on_prices: dict[str, float]) -> str:
    lines = ["CELEBRATION ADD-ONS:"]
    for name, price in add_on_prices.items():
        lines.append(f"  - {name}: {_price(price)}")
    if slots.celebration_type:
        lines.append(f"The guest is celebrating: {slots.celebration_type}.")
    chosen = [n for n, on in (("cake", slots.cake), ("flowers", slots.flowers)) if on]
    if chosen:
        lines.append(f"Already requested: {', '.join(chosen)}.")
    return "\n".join(lines)


def build_location_prompt(
    restaurant: Restaurant, transfers: list[TransferOption], hotel_name: Optional[str]
) -> str:
    lines = [f"ADDRESS: {restaurant.address or 'not listed'}"]
    if restaurant.area:
        lines.append(f"AREA: {restaurant.area}")
    if transfers:
        lines.append("TRANSFER OPTIONS:")
        for t in transfers:
            lines.append(
                f"  - from {t.area}: {_price(t.price_4_or_less)} for up to 4 guests, "
                f"{_price(t.price_5_to_8)} for 5 to 8 guests"
            )
    else:
        lines.append("No transfer service is offered.")
    if hotel_name:
        lines.append(f"The guest is staying at {hotel_name}.")
    return "\n".join(lines)


def build_contact_prompt(restaurant: Restaurant) -> str:
    lines = ["CONTACT DETAILS:"]
    if restaurant.phone:
        lines.append(f"  Restaurant phone: {restaurant.phone}")
    if restaurant.email:
        lines.append(f"  Restaurant email: {restaurant.email}")
    if restaurant.owner_name:
        owner = restaurant.owner_name
        reach = " / ".join(v for v in (restaurant.owner_phone, restaurant.owner_email) if v)
        lines.append(f"  Owner: {owner}" + (f" ({reach})" if reach else ""))
    if len(lines) == 1:
        lines.append("  No contact details are listed.")
    return "\n".join(lines)


def build_hours_prompt(hours: list[OpeningHours]) -> str:
    lines = ["OPENING HOURS:"]
    for entry in sorted(hours, key=lambda h: h.weekday):
        day = WEEKDAY_NAMES[entry.weekday]
        if entry.is_closed:
            lines.append(f"  {day}: closed")
        else:
            lines.append(
                f"  {day}: {format_time_for_display(entry.open_time)} to "
                f"{format_time_for_display(entry.close_time)}"
            )
    return "\n".join(lines)


def build_inventory_prompt(types: list[TableType], inventory: list[TableInventory]) -> str:
    counts = {i.table_type.lower(): i.total_tables for i in inventory}
    lines = ["TABLES:"]
    for t in sorted(types, key=lambda t: t.capacity, reverse=True):
        price = "no extra charge" if not t.price else _price(t.price)
        lines.append(
            f"  - {t.name}: {counts.get(t.name.lower(), 0)} tables, "
            f"up to {t.capacity} guests each, {price}"
        )
    return "\n".join(lines)
