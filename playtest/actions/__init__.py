"""Actions package"""
from .agent_action import AgentAction
from .axis_action import AxisAction
from .base_action import ActionContext, BaseAction
from .click_action import ClickAction, candidate_labels
from .observe_action import ObserveAction
from .press_action import PressAction
from .registry import ActionRegistry, create_action_registry
from .screenshot_action import ScreenshotAction
from .wait_action import WaitAction

__all__ = [
    "ActionContext",
    "ActionRegistry",
    "AgentAction",
    "AxisAction",
    "BaseAction",
    "ClickAction",
    "ObserveAction",
    "PressAction",
    "ScreenshotAction",
    "WaitAction",
    "candidate_labels",
    "create_action_registry",
]
