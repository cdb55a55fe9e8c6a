"""
Slot extraction: turn a free-text user message into reservation fields.

Every message is first classified against the last agent question:

    correction     explicit change verbs ("change", "update", "should be")
    location_data  map pins, coordinates or place ids
    greeting       short greetings and acknowledgements
    direct_answer  matches the shape of the field the agent asked for,
                   or carries self-describing booking data ("8pm", "4 people")
    unclear        anything else

Only direct answers and location data write slots, and only into empty
ones. Corrections are the single path that may overwrite a value.
Extraction is deterministic for a given clock.
"""

import logging
import re
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from concierge.conversation.datetime_parsing import (
    NUMBER_WORDS,
    Clock,
    local_clock,
    parse_date,
    parse_time,
)
from concierge.schemas.agent_schema import ResponseKind
from concierge.schemas.reservation_schema import BookingDetails
from concierge.schemas.session_schema import (
    BOOKING_FIELDS,
    CONTACT_FIELDS,
    CollectedSlots,
    Sender,
    Turn,
)
from concierge.utils import normalize_phone

logger = logging.getLogger(__name__)

GREETINGS = frozenset({
    "hi", "hello", "hey", "yes", "no", "ok", "okay", "sure", "thanks",
    "thank you", "good morning", "good afternoon", "good evening", "yep", "nope",
})

CORRECTION_RE = re.compile(r"\b(change|update|switch|instead|actually|make it|should be)\b")

LOCATION_MARKER_RE = re.compile(
    r"location_selected:|place_id|\blat(?:itude)?\s*[:=]|\b(?:lng|lon|longitude)\s*[:=]"
    r"|maps\.google|goo\.gl/maps|maps\.app\.goo\.gl"
    r"|-?\d{1,3}\.\d{3,}\s*,\s*-?\d{1,3}\.\d{3,}"
)

# Words in the last agent message that tell us which field it asked for.
FIELD_CUES: dict[str, tuple[str, ...]] = {
    "date": ("date", "which day", "what day", "when would"),
    "time": ("time", "what time", "o'clock"),
    "party_size": ("how many", "party size", "guests", "people"),
    "customer_name": ("name",),
    "customer_email": ("email", "e-mail"),
    "customer_phone": ("phone", "mobile", "contact number"),
    "table_type": ("table type", "which table", "seating", "type of table"),
    "hotel_name": ("hotel", "where are you staying"),
    "celebration_type": ("occasion", "celebrating"),
}

# Question keys an agent may record that stand for several fields.
QUESTION_FIELDS: dict[str, tuple[str, ...]] = {
    "contact": CONTACT_FIELDS,
    "booking": BOOKING_FIELDS,
}

CORRECTION_FIELD_ALIASES: dict[str, str] = {
    "date": "date", "day": "date",
    "time": "time",
    "party size": "party_size", "party": "party_size", "guests": "party_size",
    "people": "party_size", "number of people": "party_size", "number of guests": "party_size",
    "name": "customer_name",
    "email": "customer_email", "e-mail": "customer_email",
    "phone": "customer_phone", "phone number": "customer_phone", "number": "customer_phone",
    "table": "table_type", "table type": "table_type",
}

CELEBRATION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "birthday": ("birthday", "bday"),
    "anniversary": ("anniversary",),
    "engagement": ("engagement", "engaged"),
    "proposal": ("proposal", "propose", "marry"),
    "romantic": ("romantic", "date night", "romance"),
    "graduation": ("graduation", "graduate"),
}

NAME_STOPWORDS = frozenset({
    "and", "my", "email", "e-mail", "phone", "number", "is", "at", "with", "from",
    "here", "please", "thanks", "the", "a", "an", "for", "mobile", "sounds", "good",
    "what", "what's", "how", "where", "when", "why", "which", "who", "can", "could",
    "do", "does", "are", "is", "not", "just", "maybe", "sorry", "great",
})

_NUM = r"\d{1,2}|" + "|".join(NUMBER_WORDS)
_NOT_A_TIME = r"(?!\s*(?:am|pm|a\.m|p\.m|:|o'?\s*clock|hours?|minutes?|nights?|days?))"
_PARTY_PATTERNS = (
    re.compile(rf"\b({_NUM})\s*(?:people|persons|person|guests|pax|adults|diners|of us)\b"),
    re.compile(rf"\b(?:party|table|group|reservation|booking)\s+(?:of|for)\s+({_NUM})\b{_NOT_A_TIME}"),
    re.compile(rf"\bfor\s+({_NUM})\b{_NOT_A_TIME}"),
)
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE_RE = re.compile(r"(?<![\w@])\+?\d[\d\s().-]{5,}\d")
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_NAME_INTRO_RE = re.compile(
    r"\b(?:my name is|my name's|name is|call me|name:)\s+"
    r"([a-z][a-z'\-]+(?:\s+[a-z][a-z'\-]+){0,3})",
    re.IGNORECASE,
)
_NAME_BEFORE_COMMA_RE = re.compile(r"^\s*([A-Za-z][A-Za-z'\-]+(?:\s+[A-Za-z][A-Za-z'\-]+){0,3})\s*,")
_BARE_NAME_RE = re.compile(r"^\s*([A-Za-z][A-Za-z'\-]+(?:\s+[A-Za-z][A-Za-z'\-]+){0,3})\s*[.!]?\s*$")
_HOTEL_RE = re.compile(
    r"\b(?:staying at|stay at|staying in|we're at|we are at)\s+(?:the\s+)?"
    r"([A-Za-z][\w'&\-]*(?:\s+[A-Za-z][\w'&\-]*){0,4}?)(?:\s+hotel)?(?=[,.!?]|$|\s+(?:and|in|near)\b)",
    re.IGNORECASE,
)
_LOCATION_SELECTED_RE = re.compile(r"location_selected:\s*([^|;\n]+)", re.IGNORECASE)
_SPECIAL_REQUEST_RE = re.compile(
    r"\b((?:allergic|allergy|intolerant) to [a-z ]+|wheelchair[a-z ]*|high ?chair[a-z ]*)",
    re.IGNORECASE,
)


def _normalize(text: str) -> str:
    return " ".join(re.sub(r"[^\w\s']", " ", text.lower()).split())


def _number(token: str) -> Optional[int]:
    token = token.lower()
    if token in NUMBER_WORDS:
        return NUMBER_WORDS[token]
    return int(token) if token.isdigit() else None


def referenced_fields(agent_message: Optional[str]) -> list[str]:
    """Fields the agent message appears to ask about, in declaration order."""
    if not agent_message:
        return []
    lower = agent_message.lower()
    return [name for name, cues in FIELD_CUES.items() if any(cue in lower for cue in cues)]


def expected_fields(last_question: Optional[str], last_agent_message: Optional[str]) -> list[str]:
    """Resolve what the last agent turn asked for.

    ``last_question`` is the key recorded by the agent; without one we
    fall back to cue words in the agent's text.
    """
    if last_question:
        if last_question in QUESTION_FIELDS:
            return list(QUESTION_FIELDS[last_question])
        if last_question in FIELD_CUES:
            return [last_question]
        return []
    return referenced_fields(last_agent_message)


def match_table_type(message: str, known_table_types: Iterable[str]) -> Optional[str]:
    lower = message.lower()
    for name in known_table_types:
        if re.search(rf"\b{re.escape(name.lower())}\b", lower):
            return name
    return None


def _clean_name(raw: str) -> Optional[str]:
    words = []
    for word in raw.split():
        if word.lower() in NAME_STOPWORDS:
            break
        words.append(word)
    if not words or len(" ".join(words)) < 2:
        return None
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def parse_party_size(message: str) -> Optional[int]:
    lower = message.lower()
    for pattern in _PARTY_PATTERNS:
        match = pattern.search(lower)
        if match:
            value = _number(match.group(1))
            if value and value > 0:
                return value
    return None


def parse_email(message: str) -> Optional[str]:
    match = _EMAIL_RE.search(message)
    return match.group(0).lower() if match else None


def parse_phone(message: str) -> Optional[str]:
    text = _EMAIL_RE.sub(" ", _ISO_DATE_RE.sub(" ", message))
    for match in _PHONE_RE.finditer(text):
        digits = re.sub(r"\D", "", match.group(0))
        if 7 <= len(digits) <= 15:
            return normalize_phone(match.group(0))
    return None


def parse_celebration(message: str) -> dict[str, Any]:
    lower = message.lower()
    values: dict[str, Any] = {}
    for occasion, keywords in CELEBRATION_KEYWORDS.items():
        if any(re.search(rf"\b{re.escape(k)}", lower) for k in keywords):
            values["celebration_type"] = occasion
            break
    if re.search(r"\b(?:no|without(?: a| any)?)\s+cake\b", lower):
        values["cake"] = False
    elif re.search(r"\bcake\b", lower):
        values["cake"] = True
    if re.search(r"\b(?:no|without(?: any)?)\s+flowers?\b", lower):
        values["flowers"] = False
    elif re.search(r"\b(?:flowers?|bouquet)\b", lower):
        values["flowers"] = True
    return values


def parse_self_describing(
    message: str, today: date, known_table_types: Sequence[str] = ()
) -> dict[str, Any]:
    """Values recognisable without knowing what the agent asked."""
    values: dict[str, Any] = {
        "date": parse_date(message, today),
        "time": parse_time(message),
        "party_size": parse_party_size(message),
        "customer_email": parse_email(message),
        "customer_phone": parse_phone(message),
        "table_type": match_table_type(message, known_table_types),
    }
    intro = _NAME_INTRO_RE.search(message)
    if intro:
        values["customer_name"] = _clean_name(intro.group(1))
    elif values["customer_email"] or values["customer_phone"]:
        before_comma = _NAME_BEFORE_COMMA_RE.match(message)
        if before_comma:
            values["customer_name"] = _clean_name(before_comma.group(1))
    hotel = _HOTEL_RE.search(message)
    if hotel:
        values["hotel_name"] = hotel.group(1).strip().title()
    special = _SPECIAL_REQUEST_RE.search(message)
    if special:
        values["special_requests"] = special.group(1).strip()
    values.update(parse_celebration(message))
    return {k: v for k, v in values.items() if v is not None}


def parse_field(
    field_name: str, text: str, today: date, known_table_types: Sequence[str] = ()
) -> Any:
    """Interpret ``text`` as a bare answer for one specific field."""
    stripped = text.strip()
    lower = stripped.lower()
    if field_name == "date":
        return parse_date(stripped, today)
    if field_name == "time":
        parsed = parse_time(stripped)
        if parsed is None and re.fullmatch(_NUM, lower):
            parsed = parse_time(f"at {lower}")
        return parsed
    if field_name == "party_size":
        explicit = parse_party_size(stripped)
        if explicit:
            return explicit
        if parse_time(stripped) is not None:
            return None
        match = re.search(rf"\b({_NUM})\b", lower)
        value = _number(match.group(1)) if match else None
        return value if value and value > 0 else None
    if field_name == "customer_name":
        intro = _NAME_INTRO_RE.search(stripped)
        if intro:
            return _clean_name(intro.group(1))
        bare = _BARE_NAME_RE.match(stripped)
        if bare and _normalize(stripped) not in GREETINGS:
            return _clean_name(bare.group(1))
        return None
    if field_name == "customer_email":
        return parse_email(stripped)
    if field_name == "customer_phone":
        return parse_phone(stripped)
    if field_name == "table_type":
        return match_table_type(stripped, known_table_types)
    if field_name == "hotel_name":
        hotel = _HOTEL_RE.search(stripped)
        if hotel:
            return hotel.group(1).strip().title()
        if 2 <= len(stripped) <= 60 and _normalize(stripped) not in GREETINGS and "?" not in stripped:
            cleaned = re.sub(r"^(?:the|at the)\s+", "", stripped, flags=re.IGNORECASE)
            return re.sub(r"\s+hotel$", "", cleaned.strip(" .!"), flags=re.IGNORECASE).title()
        return None
    if field_name == "celebration_type":
        return parse_celebration(stripped).get("celebration_type")
    return None


def parse_expected(
    message: str, fields: Sequence[str], today: date, known_table_types: Sequence[str] = ()
) -> dict[str, Any]:
    values = {}
    for name in fields:
        value = parse_field(name, message, today, known_table_types)
        if value is not None:
            values[name] = value
    return values


def classify_response(
    message: str,
    last_agent_message: Optional[str],
    *,
    expected: Optional[Sequence[str]] = None,
    known_table_types: Sequence[str] = (),
    today: Optional[date] = None,
) -> ResponseKind:
    """Classify a user message relative to the agent's last question."""
    lower = message.lower()
    if CORRECTION_RE.search(lower):
        return ResponseKind.CORRECTION
    if LOCATION_MARKER_RE.search(lower):
        return ResponseKind.LOCATION_DATA
    if _normalize(message) in GREETINGS:
        return ResponseKind.GREETING

    today = today or date.today()
    fields = list(expected) if expected is not None else referenced_fields(last_agent_message)
    if fields and parse_expected(message, fields, today, known_table_types):
        return ResponseKind.DIRECT_ANSWER
    if parse_self_describing(message, today, known_table_types):
        return ResponseKind.DIRECT_ANSWER
    return ResponseKind.UNCLEAR


class SlotExtractor:
    """Deterministic extractor of reservation slots from user messages."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or local_clock()

    def today(self) -> date:
        return self._clock().date()

    def _resolve_today(self, today: Optional[date]) -> date:
        return today or self.today()

    def classify(
        self,
        message: str,
        last_agent_message: Optional[str],
        *,
        last_question: Optional[str] = None,
        known_table_types: Sequence[str] = (),
        today: Optional[date] = None,
    ) -> ResponseKind:
        return classify_response(
            message,
            last_agent_message,
            expected=expected_fields(last_question, last_agent_message),
            known_table_types=known_table_types,
            today=self._resolve_today(today),
        )

    def parse_booking_details(self, message: str, today: Optional[date] = None) -> BookingDetails:
        """Date, time and party size mentioned in a message, if any."""
        values = parse_self_describing(message, self._resolve_today(today))
        return BookingDetails(**{k: v for k, v in values.items() if k in BOOKING_FIELDS})

    def extract(
        self,
        message: str,
        history: Sequence[Turn],
        existing_slots: CollectedSlots,
        *,
        last_question: Optional[str] = None,
        known_table_types: Sequence[str] = (),
        today: Optional[date] = None,
    ) -> CollectedSlots:
        """Return a new ``CollectedSlots`` with this message applied.

        ``existing_slots`` is never mutated. ``today`` overrides the clock
        date, for restaurants in another timezone.
        """
        today = self._resolve_today(today)
        slots = existing_slots.copy()
        last_agent = next(
            (turn.text for turn in reversed(history) if turn.sender == Sender.AGENT), None
        )
        fields = expected_fields(last_question, last_agent)
        kind = classify_response(
            message, last_agent, expected=fields,
            known_table_types=known_table_types, today=today,
        )

        if kind in (ResponseKind.GREETING, ResponseKind.UNCLEAR):
            logger.debug("No slot writes for %s message", kind.value)
            return slots

        if kind == ResponseKind.LOCATION_DATA:
            match = _LOCATION_SELECTED_RE.search(message)
            if match:
                slots.fill_missing({"hotel_name": match.group(1).strip()})
            return slots

        values = parse_self_describing(message, today, known_table_types)
        for name, value in parse_expected(message, fields, today, known_table_types).items():
            values.setdefault(name, value)

        if kind == ResponseKind.CORRECTION:
            self._apply_correction(slots, message, values, today, known_table_types)
        else:
            written = slots.fill_missing(values)
            logger.debug("Direct answer wrote slots: %s", written)
        return slots

    def _apply_correction(
        self,
        slots: CollectedSlots,
        message: str,
        values: dict[str, Any],
        today: date,
        known_table_types: Sequence[str],
    ) -> None:
        aliases = "|".join(sorted(CORRECTION_FIELD_ALIASES, key=len, reverse=True))
        targeted = re.search(
            rf"\b(?:change|update|switch|make)\s+(?:the\s+|my\s+|our\s+)?({aliases})\s+(?:to|for)\s+(.+)$",
            message,
            re.IGNORECASE,
        )
        if targeted:
            field_name = CORRECTION_FIELD_ALIASES[targeted.group(1).lower()]
            value = parse_field(field_name, targeted.group(2), today, known_table_types)
            if value is not None:
                slots.overwrite(field_name, value)
                logger.debug("Corrected %s via explicit rewrite", field_name)
                return

        for name, value in values.items():
            if slots.overwrite(name, value):
                logger.debug("Corrected %s", name)
