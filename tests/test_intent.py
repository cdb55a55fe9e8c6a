"""Tests for weighted keyword intent scoring."""

from concierge.config import INTENT_PATTERNS, IntentPattern
from concierge.conversation.intent import best_agent, detect_intent, score_intents
from concierge.schemas.session_schema import AgentName


class TestScoreIntents:
    def test_weight_times_matches(self):
        scores = score_intents("I'd like to book a table")
        assert scores[AgentName.RESERVATION] == 4.0

    def test_plural_keywords_count(self):
        scores = score_intents("do you do birthday cakes")
        assert scores[AgentName.CELEBRATION] == 2 * 2.2

    def test_word_boundaries(self):
        assert score_intents("the bookshelf") == {}

    def test_multi_word_keyword(self):
        scores = score_intents("how many tables do you have")
        assert scores[AgentName.TABLE_AVAILABILITY] == 2.5

    def test_custom_patterns(self):
        patterns = {AgentName.MENU: IntentPattern(keywords=("souvlaki",), weight=5.0)}
        assert score_intents("Souvlaki?", patterns) == {AgentName.MENU: 5.0}


class TestBestAgent:
    def test_highest_score_wins(self):
        assert best_agent({AgentName.MENU: 1.8, AgentName.LOCATION: 3.0}) == AgentName.LOCATION

    def test_ties_follow_priority(self):
        scores = {AgentName.MENU: 2.0, AgentName.CELEBRATION: 2.0}
        assert best_agent(scores) == AgentName.CELEBRATION

    def test_no_scores(self):
        assert best_agent({}) is None


class TestDetectIntent:
    def test_menu_question(self):
        assert detect_intent("what vegan dishes do you have") == AgentName.MENU

    def test_booking_request(self):
        assert detect_intent("can I reserve a table for tonight") == AgentName.RESERVATION

    def test_capacity_question(self):
        assert detect_intent("how many tables do you have") == AgentName.TABLE_AVAILABILITY

    def test_hours_question(self):
        assert detect_intent("are you open on sunday") == AgentName.RESTAURANT_INFO

    def test_nothing_matches(self):
        assert detect_intent("hmm") is None

    def test_every_agent_has_keywords(self):
        assert set(INTENT_PATTERNS) == set(AgentName)
