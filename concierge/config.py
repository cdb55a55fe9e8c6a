"""
Centralized configuration with environment variable overrides.

Restaurant defaults, model settings, orchestration limits, add-on pricing
and the intent routing table all live here. Everything is loaded once at
import time into frozen structures and treated as read-only afterwards.
"""

import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from dotenv import load_dotenv

from concierge.logging_context import install_session_filter
from concierge.schemas.session_schema import AgentName

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_int_tuple(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of integers, e.g. ``-30,30,-60``."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class RestaurantConfig:
    """Venue-independent defaults applied to every restaurant."""

    timezone: str = os.getenv("RESTAURANT_TIMEZONE", "Europe/Athens")
    currency: str = os.getenv("CURRENCY_SYMBOL", "€")
    booking_horizon_days: int = _safe_int("BOOKING_HORIZON_DAYS", "90")


@dataclass(frozen=True)
class ModelConfig:
    """Language model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    llm_max_tokens: int = _safe_int("LLM_MAX_TOKENS", "600")
    llm_timeout_sec: float = _safe_float("LLM_TIMEOUT_SEC", "30.0")
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")


@dataclass(frozen=True)
class OrchestrationConfig:
    """Limits on routing, history, sessions and availability probing."""

    max_handoff_depth: int = _safe_int("MAX_HANDOFF_DEPTH", "3")
    history_window: int = _safe_int("HISTORY_WINDOW", "10")
    session_ttl_minutes: int = _safe_int("SESSION_TTL_MINUTES", "30")
    max_active_sessions: int = _safe_int("MAX_ACTIVE_SESSIONS", "1000")
    max_alternatives: int = _safe_int("MAX_ALTERNATIVES", "3")
    alternative_offsets_minutes: tuple[int, ...] = _safe_int_tuple(
        "ALTERNATIVE_OFFSETS_MINUTES", "-30,30,-60,60,-90,90,120"
    )


@dataclass(frozen=True)
class AddOnConfig:
    """Celebration add-on prices, in the restaurant currency."""

    cake_price: float = _safe_float("CAKE_PRICE", "25")
    flowers_price: float = _safe_float("FLOWERS_PRICE", "15")
    champagne_price: float = _safe_float("CHAMPAGNE_PRICE", "35")
    decorations_price: float = _safe_float("DECORATIONS_PRICE", "20")

    def as_dict(self) -> dict[str, float]:
        return {
            "cake": self.cake_price,
            "flowers": self.flowers_price,
            "champagne": self.champagne_price,
            "decorations": self.decorations_price,
        }


@dataclass(frozen=True)
class IntentPattern:
    """Keywords that signal an agent's domain, with their weight."""

    keywords: tuple[str, ...]
    weight: float


INTENT_PATTERNS: Mapping[AgentName, IntentPattern] = MappingProxyType({
    AgentName.RESERVATION: IntentPattern(
        keywords=(
            "book", "reserve", "table", "reservation", "available", "date", "time",
            "party", "people", "guests", "confirm", "booking", "seat",
        ),
        weight=2.0,
    ),
    AgentName.TABLE_AVAILABILITY: IntentPattern(
        keywords=(
            "availability", "capacity", "biggest table", "largest table",
            "how many tables", "fully booked", "any tables", "free tables",
        ),
        weight=2.5,
    ),
    AgentName.CELEBRATION: IntentPattern(
        keywords=(
            "birthday", "anniversary", "celebration", "special", "occasion",
            "cake", "flower", "surprise", "romantic", "proposal", "wedding",
        ),
        weight=2.2,
    ),
    AgentName.MENU: IntentPattern(
        keywords=(
            "menu", "dish", "food", "eat", "price", "cost", "order", "meal",
            "vegetarian", "vegan", "gluten", "diet", "cuisine", "speciality",
            "what do you serve", "dishes",
        ),
        weight=1.8,
    ),
    AgentName.LOCATION: IntentPattern(
        keywords=(
            "location", "address", "transfer", "transport", "pickup",
            "airport", "hotel", "directions", "how to get", "where",
            "taxi", "bus", "car",
        ),
        weight=1.5,
    ),
    AgentName.SUPPORT: IntentPattern(
        keywords=(
            "help", "contact", "owner", "manager", "phone", "email",
            "problem", "issue", "complaint", "question", "assistance",
        ),
        weight=1.3,
    ),
    AgentName.RESTAURANT_INFO: IntentPattern(
        keywords=(
            "about", "info", "hours", "open", "close", "atmosphere",
            "style", "rating", "review", "description", "tell me about",
        ),
        weight=1.0,
    ),
})

# Tie-break order when two agents score equally.
AGENT_PRIORITY: tuple[AgentName, ...] = (
    AgentName.RESERVATION,
    AgentName.TABLE_AVAILABILITY,
    AgentName.CELEBRATION,
    AgentName.MENU,
    AgentName.LOCATION,
    AgentName.SUPPORT,
    AgentName.RESTAURANT_INFO,
)


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    restaurant: RestaurantConfig = field(default_factory=RestaurantConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    add_ons: AddOnConfig = field(default_factory=AddOnConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "restaurant-concierge")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.llm_timeout_sec <= 0:
        raise ValueError(
            f"LLM_TIMEOUT_SEC must be > 0, got {config.model.llm_timeout_sec}"
        )
    if config.model.llm_max_tokens < 1:
        raise ValueError(
            f"LLM_MAX_TOKENS must be >= 1, got {config.model.llm_max_tokens}"
        )

    orchestration = config.orchestration
    for name, value in [
        ("MAX_HANDOFF_DEPTH", orchestration.max_handoff_depth),
        ("HISTORY_WINDOW", orchestration.history_window),
        ("SESSION_TTL_MINUTES", orchestration.session_ttl_minutes),
        ("MAX_ACTIVE_SESSIONS", orchestration.max_active_sessions),
        ("MAX_ALTERNATIVES", orchestration.max_alternatives),
        ("BOOKING_HORIZON_DAYS", config.restaurant.booking_horizon_days),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if not orchestration.alternative_offsets_minutes:
        raise ValueError("ALTERNATIVE_OFFSETS_MINUTES must list at least one offset")
    if 0 in orchestration.alternative_offsets_minutes:
        raise ValueError("ALTERNATIVE_OFFSETS_MINUTES must not contain 0")

    for name, price in config.add_ons.as_dict().items():
        if price < 0:
            raise ValueError(f"{name.upper()}_PRICE must be >= 0, got {price}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter()
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
