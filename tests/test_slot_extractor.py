"""Tests for response classification and slot extraction."""

from datetime import date

from concierge.conversation.slot_extractor import (
    classify_response,
    expected_fields,
    match_table_type,
    parse_celebration,
    parse_party_size,
    parse_phone,
    referenced_fields,
)
from concierge.schemas.agent_schema import ResponseKind
from concierge.schemas.reservation_schema import BookingDetails
from concierge.schemas.session_schema import CollectedSlots, Sender, Turn
from tests.conftest import TOMORROW


class TestClassifyResponse:
    def test_change_verb_is_correction(self):
        assert classify_response("change the time to 9pm", None) == ResponseKind.CORRECTION

    def test_should_be_is_correction(self):
        assert classify_response("the date should be saturday", None) == ResponseKind.CORRECTION

    def test_location_marker(self):
        kind = classify_response("location_selected: Hotel Grande Bretagne", None)
        assert kind == ResponseKind.LOCATION_DATA

    def test_coordinates_are_location(self):
        assert classify_response("37.9715, 23.7257", None) == ResponseKind.LOCATION_DATA

    def test_greetings(self):
        assert classify_response("hey", None) == ResponseKind.GREETING
        assert classify_response("Thanks!", None) == ResponseKind.GREETING

    def test_answer_to_email_question(self):
        kind = classify_response(
            "maria@x.com", "What email address should we send the confirmation to?"
        )
        assert kind == ResponseKind.DIRECT_ANSWER

    def test_bare_number_answers_party_question(self):
        kind = classify_response("4", "How many guests will be joining?")
        assert kind == ResponseKind.DIRECT_ANSWER

    def test_self_describing_data_without_question(self):
        assert classify_response("8pm works", None) == ResponseKind.DIRECT_ANSWER

    def test_unrelated_reply_is_unclear(self):
        kind = classify_response("hmm let me think", "What time would you like to come?")
        assert kind == ResponseKind.UNCLEAR


class TestExpectedFields:
    def test_recorded_question_wins(self):
        assert expected_fields("customer_email", "What time?") == ["customer_email"]

    def test_group_keys_expand(self):
        assert expected_fields("contact", None) == [
            "customer_name", "customer_email", "customer_phone",
        ]

    def test_confirmation_expects_no_field(self):
        assert expected_fields("confirmation", "Shall I go ahead?") == []

    def test_falls_back_to_cue_words(self):
        assert referenced_fields("How many guests will be joining?") == ["party_size"]
        assert expected_fields(None, "Could I have your phone number?") == ["customer_phone"]


class TestFieldParsers:
    def test_party_size_patterns(self):
        assert parse_party_size("a table for two") == 2
        assert parse_party_size("there will be 6 people") == 6

    def test_party_size_ignores_times(self):
        assert parse_party_size("for 8pm") is None

    def test_phone_excludes_iso_dates(self):
        assert parse_phone("on 2026-10-17 please") is None
        assert parse_phone("call me on +30 694 123 4567") == "+306941234567"

    def test_celebration_with_refusal(self):
        values = parse_celebration("it's my birthday, no cake please but flowers would be lovely")
        assert values == {"celebration_type": "birthday", "cake": False, "flowers": True}

    def test_table_type_match(self):
        assert match_table_type("the grass table please", ["standard", "grass"]) == "grass"
        assert match_table_type("any table", ["standard", "grass"]) is None


class TestExtract:
    def test_full_booking_request(self, extractor):
        slots = extractor.extract("I'd like a table for 2 tomorrow at 8pm", [], CollectedSlots())
        assert slots.date == TOMORROW
        assert slots.time == "20:00"
        assert slots.party_size == 2

    def test_extraction_is_idempotent(self, extractor):
        message = "I'd like a table for 2 tomorrow at 8pm"
        first = extractor.extract(message, [], CollectedSlots())
        second = extractor.extract(message, [], CollectedSlots())
        assert first == second

    def test_existing_slots_not_mutated(self, extractor):
        existing = CollectedSlots(party_size=2)
        extractor.extract("tomorrow at 8pm", [], existing)
        assert existing == CollectedSlots(party_size=2)

    def test_direct_answer_only_fills_empty_slots(self, extractor):
        existing = CollectedSlots(date=TOMORROW, time="20:00", party_size=2)
        slots = extractor.extract(
            "maria@x.com, and we'll be 4 people", [], existing, last_question="customer_email"
        )
        assert slots.customer_email == "maria@x.com"
        assert slots.party_size == 2
        assert slots.time == "20:00"

    def test_greeting_writes_nothing(self, extractor):
        existing = CollectedSlots(party_size=2)
        assert extractor.extract("hello", [], existing) == existing

    def test_unclear_writes_nothing(self, extractor):
        slots = extractor.extract("Maria", [], CollectedSlots())
        assert slots.customer_name is None

    def test_bare_name_answers_name_question(self, extractor):
        slots = extractor.extract("Maria", [], CollectedSlots(), last_question="customer_name")
        assert slots.customer_name == "Maria"

    def test_contact_details_in_one_message(self, extractor):
        slots = extractor.extract(
            "My name is Maria, maria@x.com, +301234567",
            [],
            CollectedSlots(),
            last_question="customer_name",
        )
        assert slots.customer_name == "Maria"
        assert slots.customer_email == "maria@x.com"
        assert slots.customer_phone == "+301234567"

    def test_time_answer_to_party_question(self, extractor):
        slots = extractor.extract("8pm", [], CollectedSlots(), last_question="party_size")
        assert slots.time == "20:00"
        assert slots.party_size is None

    def test_cue_words_from_history(self, extractor):
        history = [
            Turn(sender=Sender.USER, text="a table please"),
            Turn(sender=Sender.AGENT, text="How many guests will be joining?"),
        ]
        slots = extractor.extract("4", history, CollectedSlots())
        assert slots.party_size == 4

    def test_location_data_fills_hotel(self, extractor):
        slots = extractor.extract("location_selected: Hotel Grande Bretagne", [], CollectedSlots())
        assert slots.hotel_name == "Hotel Grande Bretagne"


class TestBookingDetails:
    def test_parsed_from_message(self, extractor):
        details = extractor.parse_booking_details("a table for 2 tomorrow at 8pm")
        assert details == BookingDetails(date=TOMORROW, time="20:00", party_size=2)
        assert details.is_complete()

    def test_today_override(self, extractor):
        details = extractor.parse_booking_details("tomorrow", date(2026, 12, 31))
        assert details.date == "2027-01-01"
        assert not details.is_complete()

    def test_extract_today_override(self, extractor):
        slots = extractor.extract("tonight at 8pm", [], CollectedSlots(), today=date(2026, 10, 15))
        assert slots.date == "2026-10-15"

    def test_slots_drive_completeness(self):
        slots = CollectedSlots(date=TOMORROW, time="20:00", table_type="vip")
        assert slots.booking_details().table_type == "vip"
        assert not slots.booking_complete()
        slots.party_size = 2
        assert slots.booking_details().is_complete()
        assert slots.booking_complete()


class TestCorrections:
    def test_targeted_rewrite(self, extractor):
        existing = CollectedSlots(date=TOMORROW, time="20:00", party_size=2)
        slots = extractor.extract("change the time to 9pm", [], existing)
        assert slots.time == "21:00"
        assert slots.corrections == {"time": ["20:00"]}

    def test_correction_overwrites_by_value(self, extractor):
        existing = CollectedSlots(party_size=2)
        slots = extractor.extract("actually make it 4 people", [], existing)
        assert slots.party_size == 4
        assert slots.corrections["party_size"] == [2]

    def test_correction_reports_changed_fields(self, extractor):
        existing = CollectedSlots(date=TOMORROW, time="20:00", party_size=2)
        slots = extractor.extract("change the time to 9pm", [], existing)
        assert slots.changed_fields(existing) == ["time"]
