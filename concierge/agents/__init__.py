from concierge.agents.reservation_agent import ReservationAgent
from concierge.agents.table_availability_agent import TableAvailabilityAgent
from concierge.agents.celebration_agent import CelebrationAgent
from concierge.agents.menu_agent import MenuAgent
from concierge.agents.location_agent import LocationAgent
from concierge.agents.support_agent import SupportAgent
from concierge.agents.restaurant_info_agent import RestaurantInfoAgent
from concierge.agents.registry import (
    create_agent,
    create_all_agents,
    get_registered_agents,
    register_agent,
)

__all__ = [
    "ReservationAgent", "TableAvailabilityAgent", "CelebrationAgent", "MenuAgent",
    "LocationAgent", "SupportAgent", "RestaurantInfoAgent",
    "create_agent", "create_all_agents", "register_agent", "get_registered_agents",
]
