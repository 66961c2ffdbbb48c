"""
Click Action - DOM locator clicks, or a visual click through the CUA
"""
import re
from typing import List

from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import ClickStep
from ..utils.errors import ElementNotFoundError
from ..utils.retry import is_retryable_error

CUA_MIN_TIMEOUT_MS = 30000

# Common game button wordings, keyed by the words that trigger them
BUTTON_SYNONYMS = [
    (("start", "play", "begin"), ["start", "play", "begin", "start game", "play game"]),
    (("restart", "again", "retry"), ["restart", "play again", "retry", "try again"]),
    (("pause", "menu"), ["pause", "menu"]),
]

FILLER_WORDS = re.compile(r"\b(the|a|an|button|btn|link)\b", re.IGNORECASE)


def candidate_labels(target: str) -> List[str]:
    """
    Labels to try when looking for a click target, most specific first.

    "the Start button" yields "the Start button", "Start", then the
    start/play synonyms.
    """
    target = target.strip()
    normalized = target.lower()
    labels = [target]

    core = " ".join(FILLER_WORDS.sub(" ", target).split())
    if core:
        labels.append(core)

    for triggers, synonyms in BUTTON_SYNONYMS:
        if any(word in normalized for word in triggers):
            labels.extend(synonyms)

    seen = set()
    unique = []
    for label in labels:
        key = label.lower()
        if key not in seen:
            seen.add(key)
            unique.append(label)
    return unique


class ClickAction(BaseAction):
    def get_action_type(self) -> str:
        return "click"

    def get_description(self, step: ClickStep) -> str:
        return f'Click "{step.target}"'

    def get_attempt_timeout(self, step: ClickStep, context: ActionContext) -> int:
        timeout = super().get_attempt_timeout(step, context)
        if context.use_cua:
            return max(timeout * 2, CUA_MIN_TIMEOUT_MS)
        return timeout

    async def execute(self, session, step: ClickStep, context: ActionContext) -> ActionResult:
        if context.use_cua:
            return await self._execute_cua_click(step, context)
        return await self._execute_dom_click(session, step, context)

    async def _execute_cua_click(self, step: ClickStep, context: ActionContext) -> ActionResult:
        agent = context.cua.require()
        instruction = f"Click on {step.target}. This is a single click action - click once and immediately stop."
        timeout = self.get_attempt_timeout(step, context)

        self.logger.debug(f"Executing CUA click on '{step.target}' (timeout: {timeout}ms)")
        outcome = await agent.execute(
            instruction,
            max_steps=context.spec.cua_max_steps,
            timeout_ms=timeout,
            single_click=True,
        )

        return ActionResult(
            success=outcome.success,
            method="cua",
            metadata={"target": step.target},
            agent_result=outcome,
            error=None if outcome.success else f"CUA could not click '{step.target}': {outcome.message}",
        )

    async def _execute_dom_click(self, session, step: ClickStep, context: ActionContext) -> ActionResult:
        timeout = super().get_attempt_timeout(step, context)

        # Half the budget goes to waiting for the first label, half to the text fallback
        wait = timeout // 2
        for position, label in enumerate(candidate_labels(step.target)):
            matches = await session.locate(label, timeout=wait if position == 0 else None)
            if matches:
                self.logger.debug(f"Found {len(matches)} element(s) with label '{label}'")
                await session.click_locator(matches[0], timeout=timeout)
                return ActionResult(method="dom", metadata={"target": step.target, "matched": label})

        self.logger.warning(f"No locator matched '{step.target}', using direct text click as fallback")
        try:
            await session.click_text(step.target, timeout=wait)
        except Exception as e:
            if is_retryable_error(e):
                raise
            raise ElementNotFoundError(step.target) from e

        return ActionResult(method="dom", metadata={"target": step.target, "matched": None})
