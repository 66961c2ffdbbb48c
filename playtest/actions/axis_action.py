"""
Axis Action - continuous directional input for platformer-style movement
"""
from typing import List

from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import AxisStep
from ..utils.controls import resolve_action
from ..utils.errors import FatalExecutionError

DEFAULT_DURATION_MS = 500
MAX_DURATION_MS = 10000

# (positive, negative) control actions and their fallback keys per direction
AXIS_CONTROLS = {
    "horizontal": (("MoveRight", "ArrowRight"), ("MoveLeft", "ArrowLeft")),
    "vertical": (("MoveUp", "ArrowUp"), ("MoveDown", "ArrowDown")),
}


class AxisAction(BaseAction):
    def get_action_type(self) -> str:
        return "axis"

    def get_description(self, step: AxisStep) -> str:
        description = f"Axis {step.direction}"
        if step.value is not None:
            description += f" ({step.value})"
        if step.duration:
            description += f" for {step.duration}ms"
        return description

    def get_attempt_timeout(self, step: AxisStep, context: ActionContext) -> int:
        return super().get_attempt_timeout(step, context) + self._duration(step)

    async def execute(self, session, step: AxisStep, context: ActionContext) -> ActionResult:
        value = 1.0 if step.value is None else step.value
        duration = self._duration(step)
        keys = self.resolve_axis_keys(step, value, context)

        if not keys:
            raise FatalExecutionError(f"No keys resolved for axis action: {step.direction} (value: {value})")

        self.logger.debug(f"Holding {keys} for {duration}ms ({step.direction}, value {value})")
        await session.hold_keys(keys, duration)

        return ActionResult(
            method="dom",
            metadata={"direction": step.direction, "value": value, "duration": duration, "keys": keys},
        )

    def resolve_axis_keys(self, step: AxisStep, value: float, context: ActionContext) -> List[str]:
        """Explicit keys win; otherwise derive them from the direction and the controls map."""
        if step.keys is not None:
            return [context.resolve_key(k) for k in step.keys]

        directions = ["horizontal", "vertical"] if step.direction == "2d" else [step.direction]
        keys = []
        for direction in directions:
            positive, negative = AXIS_CONTROLS[direction]
            control, fallback = positive if value > 0 else negative
            mapped = resolve_action(control, context.controls)
            keys.append(mapped[0] if mapped else fallback)
        return keys

    def _duration(self, step: AxisStep) -> int:
        return min(step.duration or DEFAULT_DURATION_MS, MAX_DURATION_MS)
