"""Weighted keyword intent scoring used to pick an agent for a message."""

import logging
import re
from functools import lru_cache
from typing import Mapping, Optional

from concierge.config import AGENT_PRIORITY, INTENT_PATTERNS, IntentPattern
from concierge.schemas.session_schema import AgentName

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _keyword_regex(keyword: str) -> re.Pattern:
    # Word boundaries on both sides; a trailing plural "s"/"es" still counts.
    return re.compile(rf"\b{re.escape(keyword)}(?:s|es)?\b")


def score_intents(
    message: str,
    patterns: Mapping[AgentName, IntentPattern] = INTENT_PATTERNS,
) -> dict[AgentName, float]:
    """Score each agent as weight x number of its keywords found in the message."""
    lower = message.lower()
    scores: dict[AgentName, float] = {}
    for agent, pattern in patterns.items():
        matched = sum(1 for kw in pattern.keywords if _keyword_regex(kw).search(lower))
        if matched:
            scores[agent] = matched * pattern.weight
    return scores


def best_agent(
    scores: Mapping[AgentName, float],
    priority: tuple[AgentName, ...] = AGENT_PRIORITY,
) -> Optional[AgentName]:
    """Highest score wins; ties go to the agent earlier in ``priority``."""
    if not scores:
        return None
    top = max(scores.values())
    for agent in priority:
        if scores.get(agent) == top:
            return agent
    return None


def detect_intent(message: str) -> Optional[AgentName]:
    scores = score_intents(message)
    winner = best_agent(scores)
    if winner is not None:
        logger.debug(
            "Intent scores: %s -> %s",
            {a.value: round(s, 2) for a, s in scores.items()}, winner.value,
        )
    return winner
