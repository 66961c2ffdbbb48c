"""
Screenshot Action - captures evidence at a point in the sequence
"""
from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import ScreenshotStep


class ScreenshotAction(BaseAction):
    native_method = "none"

    def get_action_type(self) -> str:
        return "screenshot"

    def get_description(self, step: ScreenshotStep) -> str:
        return "Take screenshot"

    async def execute(self, session, step: ScreenshotStep, context: ActionContext) -> ActionResult:
        if context.capture is None:
            self.logger.debug("Screenshot step triggered but no capture manager available")
            return ActionResult()

        # A failed capture never fails the step
        try:
            metadata = await context.capture.take_screenshot(
                session, f"action_{context.action_index}", context.action_index
            )
        except Exception as e:
            self.logger.error(f"Failed to capture screenshot at step {context.action_index}: {e}")
            return ActionResult(metadata={"captured": False})

        if metadata is None:
            return ActionResult(metadata={"captured": False})
        return ActionResult(metadata={"captured": True}, artifacts=[metadata.filename])
