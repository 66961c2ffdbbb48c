"""
Action Registry - maps step action types to their handlers
"""
import logging
from typing import Dict, List, Optional

from .agent_action import AgentAction
from .axis_action import AxisAction
from .base_action import BaseAction
from .click_action import ClickAction
from .observe_action import ObserveAction
from .press_action import PressAction
from .screenshot_action import ScreenshotAction
from .wait_action import WaitAction

logger = logging.getLogger(__name__)

DEFAULT_ACTIONS = (
    WaitAction,
    ScreenshotAction,
    ObserveAction,
    ClickAction,
    PressAction,
    AxisAction,
    AgentAction,
)


class ActionRegistry:
    """
    String-keyed handler table. Registering a type twice replaces the
    first handler.
    """

    def __init__(self, register_defaults: bool = True):
        self._actions: Dict[str, BaseAction] = {}
        if register_defaults:
            for action_class in DEFAULT_ACTIONS:
                self.register(action_class())

    def register(self, action: BaseAction):
        action_type = action.get_action_type()
        if action_type in self._actions:
            logger.debug(f"Replacing handler for action type '{action_type}'")
        self._actions[action_type] = action

    def get(self, action_type: str) -> Optional[BaseAction]:
        return self._actions.get(action_type)

    def has(self, action_type: str) -> bool:
        return action_type in self._actions

    def unregister(self, action_type: str) -> bool:
        return self._actions.pop(action_type, None) is not None

    def get_action_types(self) -> List[str]:
        return list(self._actions)

    def clear(self):
        self._actions.clear()

    def __len__(self):
        return len(self._actions)


def create_action_registry() -> ActionRegistry:
    """Registry holding the default handlers."""
    return ActionRegistry()
