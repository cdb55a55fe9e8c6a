"""Tests for parsing the structured reservation block."""

from concierge.conversation.structured_output import (
    clean_response,
    extract_structured_block,
    flatten_reservation_block,
)
from tests.conftest import TOMORROW, reservation_block_reply


class TestExtractStructuredBlock:
    def test_well_formed_block(self):
        block = extract_structured_block(reservation_block_reply())
        assert block["customer"]["email"] == "maria@x.com"

    def test_no_block(self):
        assert extract_structured_block("Thanks, finalising now.") is None
        assert extract_structured_block("") is None

    def test_swapped_markers(self):
        text = '[/RESERVATION_DATA] {"date": "2026-10-17"} [RESERVATION_DATA]'
        assert extract_structured_block(text) == {"date": "2026-10-17"}

    def test_lenient_json(self):
        text = (
            "[RESERVATION_DATA]\n```json\n"
            '{"date": "2026-10-17", "hotel": undefined, "partySize": 2,}\n'
            "```\n[/RESERVATION_DATA]"
        )
        assert extract_structured_block(text) == {
            "date": "2026-10-17", "hotel": None, "partySize": 2,
        }

    def test_broken_json(self):
        assert extract_structured_block("[RESERVATION_DATA]{not json[/RESERVATION_DATA]") is None

    def test_array_is_rejected(self):
        assert extract_structured_block("[RESERVATION_DATA][1, 2][/RESERVATION_DATA]") is None


class TestCleanResponse:
    def test_strips_block(self):
        cleaned = clean_response(reservation_block_reply())
        assert cleaned == "Thank you, Maria! I'm finalising your reservation now."

    def test_strips_stray_marker(self):
        assert clean_response("All set [RESERVATION_DATA]") == "All set"


class TestFlatten:
    def test_nested_layout(self):
        flat = flatten_reservation_block(extract_structured_block(reservation_block_reply()))
        assert flat["customer_name"] == "Maria"
        assert flat["date"] == TOMORROW
        assert flat["party_size"] == 2
        assert flat["table_type"] == "standard"
        assert flat["restaurant_id"] == "1"
        assert "celebration_type" not in flat

    def test_flat_keys_accepted(self):
        flat = flatten_reservation_block({"customer_email": "a@b.co", "party_size": "4"})
        assert flat == {"customer_email": "a@b.co", "party_size": 4}

    def test_numeric_restaurant_id_becomes_string(self):
        assert flatten_reservation_block({"restaurant": {"id": 7}})["restaurant_id"] == "7"
