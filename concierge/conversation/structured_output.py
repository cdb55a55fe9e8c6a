"""
Defensive parsing of the structured reservation block a model embeds in text.

The model is asked to wrap a JSON object in ``[RESERVATION_DATA]`` markers.
What comes back is untrusted: markers may be swapped, the JSON may use
``undefined`` or trailing commas, or be wrapped in a code fence. Anything
recovered here still has to pass ``ReservationPayload`` validation before
it is acted on.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

START_MARKER = "[RESERVATION_DATA]"
END_MARKER = "[/RESERVATION_DATA]"

_BLOCK_RE = re.compile(
    r"\[\s*/?\s*RESERVATION_DATA\s*\](.*?)\[\s*/?\s*RESERVATION_DATA\s*\]",
    re.IGNORECASE | re.DOTALL,
)
_STRAY_MARKER_RE = re.compile(r"\[\s*/?\s*RESERVATION_DATA\s*\]", re.IGNORECASE)
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _loads_lenient(raw: str) -> Optional[dict[str, Any]]:
    text = _FENCE_RE.sub("", raw.strip())
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    text = text[start:end + 1]
    text = re.sub(r"\bundefined\b", "null", text)
    text = re.sub(r",\s*([}\]])", r"\1", text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Structured block is not valid JSON")
        return None
    return data if isinstance(data, dict) else None


def extract_structured_block(text: str) -> Optional[dict[str, Any]]:
    """Return the JSON object between reservation markers, or None.

    Tolerates markers in the wrong order (closing marker first) and
    surrounding whitespace.
    """
    if not text:
        return None
    match = _BLOCK_RE.search(text)
    if match is None:
        return None
    return _loads_lenient(match.group(1))


def clean_response(text: str) -> str:
    """Strip any structured blocks and stray markers from user-facing text."""
    cleaned = _BLOCK_RE.sub("", text or "")
    cleaned = _STRAY_MARKER_RE.sub("", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def _get(data: dict[str, Any], *path: str) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def flatten_reservation_block(data: dict[str, Any]) -> dict[str, Any]:
    """Map the nested block layout onto flat payload field names.

    Expected layout::

        {"restaurant": {"id": .., "name": ..},
         "customer": {"name": .., "email": .., "phone": ..},
         "reservation": {"date": .., "time": .., "partySize": .., "tableType": ..},
         "addOns": {"celebration": .., "cake": .., "flowers": ..},
         "transfer": {"needed": .., "hotel": ..},
         "specialRequests": ..}

    Flat snake_case keys are accepted too.
    """
    flat: dict[str, Any] = {
        "restaurant_id": _get(data, "restaurant", "id"),
        "customer_name": _get(data, "customer", "name"),
        "customer_email": _get(data, "customer", "email"),
        "customer_phone": _get(data, "customer", "phone"),
        "date": _get(data, "reservation", "date"),
        "time": _get(data, "reservation", "time"),
        "party_size": _get(data, "reservation", "partySize"),
        "table_type": _get(data, "reservation", "tableType"),
        "celebration_type": _get(data, "addOns", "celebration"),
        "cake": _get(data, "addOns", "cake"),
        "flowers": _get(data, "addOns", "flowers"),
        "hotel_name": _get(data, "transfer", "hotel"),
        "special_requests": data.get("specialRequests"),
    }
    for key, value in data.items():
        if key in flat and flat[key] is None and not isinstance(value, dict):
            flat[key] = value
    if flat["restaurant_id"] is not None:
        flat["restaurant_id"] = str(flat["restaurant_id"])
    if isinstance(flat["party_size"], str) and flat["party_size"].strip().isdigit():
        flat["party_size"] = int(flat["party_size"].strip())
    return {k: v for k, v in flat.items() if v not in (None, "")}
