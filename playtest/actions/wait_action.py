"""
Wait Action - pauses the sequence
"""
import asyncio

from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import WaitStep


class WaitAction(BaseAction):
    native_method = "none"

    def get_action_type(self) -> str:
        return "wait"

    def get_description(self, step: WaitStep) -> str:
        return f"Wait {step.duration_ms}ms"

    def get_attempt_timeout(self, step: WaitStep, context: ActionContext) -> int:
        return step.duration_ms + context.spec.timeouts.action

    async def execute(self, session, step: WaitStep, context: ActionContext) -> ActionResult:
        await asyncio.sleep(step.duration_ms / 1000)
        return ActionResult(metadata={"duration_ms": step.duration_ms})
