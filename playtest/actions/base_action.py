"""
Base Action - contract shared by every step handler
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..models.action_result import ActionResult
from ..models.test_spec import TestSpec
from ..utils.controls import resolve_key


class ActionContext(BaseModel):
    """Everything a handler may need besides the session and the step."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    spec: TestSpec
    action_index: int
    capture: Any = None
    cua: Any = None
    use_cua: bool = False

    @property
    def controls(self) -> Optional[Dict[str, List[str]]]:
        return self.spec.controls

    def resolve_key(self, key: str) -> str:
        """Resolve a control action or key name through the spec's controls."""
        return resolve_key(key, self.controls)


class BaseAction(ABC):
    """
    A step handler. One instance serves every step of its type.

    Handlers raise on failure. Retrying, timing and method attribution
    belong to the orchestrator.
    """

    native_method = "dom"

    def __init__(self):
        self.logger = logging.getLogger(f"action.{self.get_action_type()}")

    @abstractmethod
    def get_action_type(self) -> str:
        """The step `action` value this handler serves."""

    @abstractmethod
    def get_description(self, step) -> str:
        """Human-readable summary used in the timeline."""

    @abstractmethod
    async def execute(self, session, step, context: ActionContext) -> ActionResult:
        """
        Perform one attempt of the step.

        Args:
            session: Browser session
            step: The validated step
            context: Spec, capture manager, CUA capability and step index

        Returns:
            ActionResult; success=False marks the step failed without retry
        """

    def get_attempt_timeout(self, step, context: ActionContext) -> int:
        """Upper bound for one attempt, in ms."""
        return getattr(step, "timeout", None) or context.spec.timeouts.action

    def __repr__(self):
        return f"<{self.__class__.__name__}(type='{self.get_action_type()}')>"
