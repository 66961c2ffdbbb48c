"""
Observe Action - checks whether a target is reachable through the DOM
"""
from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import ObserveStep
from ..utils.errors import ElementNotFoundError


class ObserveAction(BaseAction):
    """
    Counts visible elements matching the target.

    Finding nothing is a useful result (the game may draw its UI on a
    canvas), so it only fails the step when the step is a gate.
    """

    native_method = "none"

    def get_action_type(self) -> str:
        return "observe"

    def get_description(self, step: ObserveStep) -> str:
        return f'Observe "{step.target}"'

    async def execute(self, session, step: ObserveStep, context: ActionContext) -> ActionResult:
        matches = await session.locate(step.target, timeout=step.timeout)

        if matches:
            self.logger.info(f"Found {len(matches)} element(s) for '{step.target}'")
        else:
            self.logger.warning(
                f"No elements found for '{step.target}'; it may not be reachable via DOM-based methods"
            )
            if step.gate:
                raise ElementNotFoundError(step.target)

        return ActionResult(metadata={"elements_found": len(matches), "target": step.target})
