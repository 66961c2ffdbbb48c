"""
Press Action - keyboard input with repeat, hold and alternating keys
"""
import asyncio

from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import PressStep

MAX_REPEAT = 100
MAX_HOLD_MS = 10000
DEFAULT_DELAY_MS = 50


class PressAction(BaseAction):
    def get_action_type(self) -> str:
        return "press"

    def get_description(self, step: PressStep) -> str:
        if step.alternate_keys:
            suffix = f" ({step.repeat}x)" if step.repeat else ""
            return f"Press {'/'.join(step.alternate_keys)} alternately{suffix}"
        if step.duration:
            return f"Press {step.key} for {step.duration}ms"
        return f"Press {step.key}" + (f" ({step.repeat}x)" if step.repeat else "")

    def get_attempt_timeout(self, step: PressStep, context: ActionContext) -> int:
        base = super().get_attempt_timeout(step, context)
        if step.duration and not step.alternate_keys:
            return base + min(step.duration, MAX_HOLD_MS)
        return base + self._repeat(step) * self._delay(step)

    async def execute(self, session, step: PressStep, context: ActionContext) -> ActionResult:
        repeat = self._repeat(step)
        delay = self._delay(step)

        if step.alternate_keys:
            keys = [context.resolve_key(k) for k in step.alternate_keys]
            self.logger.debug(f"Alternating between keys {keys} ({repeat}x)")
            for i in range(repeat):
                await session.press_key(keys[i % len(keys)])
                if i < repeat - 1:
                    await asyncio.sleep(delay / 1000)
            return ActionResult(method="dom", metadata={"keys": keys, "repeat": repeat})

        key = context.resolve_key(step.key)
        if step.duration:
            duration = min(step.duration, MAX_HOLD_MS)
            self.logger.debug(f"Holding {key} for {duration}ms")
            await session.hold_keys([key], duration)
            return ActionResult(method="dom", metadata={"key": key, "duration": duration})

        self.logger.debug(f"Pressing {key} ({repeat}x)")
        for i in range(repeat):
            await session.press_key(key)
            if i < repeat - 1:
                await asyncio.sleep(delay / 1000)
        return ActionResult(method="dom", metadata={"key": key, "repeat": repeat})

    def _repeat(self, step: PressStep) -> int:
        return min(step.repeat or 1, MAX_REPEAT)

    def _delay(self, step: PressStep) -> int:
        return DEFAULT_DELAY_MS if step.delay is None else step.delay
