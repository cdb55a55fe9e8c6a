"""
Agent registry: centralized agent creation keyed by ``AgentName``.

Agents never import each other. A handoff names its target with an
``AgentName`` and the orchestrator resolves it through this registry,
which must hold a factory for every member of the enum.
"""

import logging
from typing import Any, Callable

from concierge.schemas.session_schema import AgentName

logger = logging.getLogger(__name__)

_AGENT_REGISTRY: dict[AgentName, Callable[..., Any]] = {}


def register_agent(name: AgentName, factory: Callable[..., Any]) -> None:
    """Register an agent factory for an agent name."""
    _AGENT_REGISTRY[AgentName(name)] = factory
    logger.debug("Agent registered: %s", AgentName(name).value)


def create_agent(name: AgentName, **kwargs: Any) -> Any:
    """Create an agent instance by registered name.

    Raises:
        KeyError: If the agent name is not registered.
    """
    name = AgentName(name)
    if name not in _AGENT_REGISTRY:
        registered = [n.value for n in _AGENT_REGISTRY]
        raise KeyError(f"Agent '{name.value}' not registered. Available: {registered}")
    return _AGENT_REGISTRY[name](**kwargs)


def get_registered_agents() -> list[AgentName]:
    """Return names of all registered agents."""
    return list(_AGENT_REGISTRY.keys())


def missing_agents() -> list[AgentName]:
    """Agent names with no registered factory. Empty when routing is exhaustive."""
    return [name for name in AgentName if name not in _AGENT_REGISTRY]


def create_all_agents(**kwargs: Any) -> dict[AgentName, Any]:
    """Instantiate one agent per ``AgentName``, sharing the given collaborators.

    Raises:
        KeyError: If any agent name has no registered factory.
    """
    missing = missing_agents()
    if missing:
        raise KeyError(f"No agent registered for: {[n.value for n in missing]}")
    return {name: create_agent(name, **kwargs) for name in AgentName}


def _auto_register() -> None:
    """Auto-register all built-in agents. Called once at import time."""
    from concierge.agents.celebration_agent import CelebrationAgent
    from concierge.agents.location_agent import LocationAgent
    from concierge.agents.menu_agent import MenuAgent
    from concierge.agents.reservation_agent import ReservationAgent
    from concierge.agents.restaurant_info_agent import RestaurantInfoAgent
    from concierge.agents.support_agent import SupportAgent
    from concierge.agents.table_availability_agent import TableAvailabilityAgent

    register_agent(AgentName.RESERVATION, ReservationAgent)
    register_agent(AgentName.TABLE_AVAILABILITY, TableAvailabilityAgent)
    register_agent(AgentName.CELEBRATION, CelebrationAgent)
    register_agent(AgentName.MENU, MenuAgent)
    register_agent(AgentName.LOCATION, LocationAgent)
    register_agent(AgentName.SUPPORT, SupportAgent)
    register_agent(AgentName.RESTAURANT_INFO, RestaurantInfoAgent)


_auto_register()
