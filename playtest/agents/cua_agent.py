"""
Computer Use Agent - vision-model driven input for steps without DOM selectors
"""
import asyncio
import base64
import json
from typing import Any, Dict, Optional

import ollama

from .base_agent import BaseAgent
from ..browser.controller import BrowserController
from ..config import settings
from ..models.action_result import AgentResult
from ..models.test_result import CUAUsage
from ..utils.controls import resolve_key_name
from ..utils.errors import CUAExecutionError, CUAInitializationError, CUAUnavailableError
from ..utils.helpers import truncate_text

SYSTEM_PROMPT = (
    "You are testing a browser game. Interact with game elements precisely "
    "based on visual cues. Click on the exact visual elements described."
)

DECISION_FORMAT = """Respond in JSON format with exactly one next action:
{"action": "click", "x": <int>, "y": <int>, "reason": "..."}
{"action": "press", "key": "<key name, e.g. ArrowUp, Space, Enter>", "reason": "..."}
{"action": "done", "reason": "why the goal is complete"}
{"action": "fail", "reason": "why the goal cannot be completed"}"""


class ComputerUseAgent(BaseAgent):
    """
    Drives the game from screenshots:
    - Sends the current viewport to an ollama vision model
    - Performs the returned click or key press on the browser session
    - Repeats until the model reports done/fail or the step budget runs out
    """

    def __init__(self, browser: BrowserController, client: Any = None, host: str = None):
        super().__init__(
            name="ComputerUseAgent",
            description="Performs game input from screenshots using a vision model"
        )
        self.browser = browser
        self.host = host or settings.OLLAMA_HOST
        self.client = client or ollama.AsyncClient(host=self.host)
        self.model: Optional[str] = None
        self.max_steps = 3
        self.usage = CUAUsage()

    def is_initialized(self) -> bool:
        return self.model is not None

    async def initialize(self, model: str, max_steps: int = 3):
        """
        Check the model is available and remember the step budget.

        Raises:
            CUAInitializationError: If the ollama host or model is unavailable
        """
        if self.is_initialized():
            return

        self.log_info(f"Initializing CUA agent with model: {model}")
        try:
            await self.client.show(model)
        except Exception as e:
            raise CUAInitializationError(
                f"CUA initialization failed: model '{model}' unavailable on {self.host}: {e}"
            ) from e

        self.model = model
        self.max_steps = max_steps

    async def execute(
        self,
        instruction: str,
        max_steps: int = None,
        timeout_ms: int = None,
        single_click: bool = False
    ) -> AgentResult:
        """
        Carry out one instruction.

        Args:
            instruction: What to do, e.g. "Click on the start button"
            max_steps: Model decisions allowed, defaults to the initialized budget
            timeout_ms: Wall-clock bound for the whole instruction
            single_click: Stop after the first click

        Raises:
            CUAExecutionError: Not initialized, or the timeout expired
        """
        return await self._run(instruction, max_steps or self.max_steps, timeout_ms, single_click)

    async def execute_agent(self, goal: str, max_steps: int = None, timeout_ms: int = None) -> AgentResult:
        """Autonomous multi-step play toward a natural-language goal."""
        return await self._run(goal, max_steps or 20, timeout_ms, single_click=False)

    def get_usage_metrics(self) -> CUAUsage:
        return self.usage.model_copy()

    async def _run(self, instruction: str, max_steps: int, timeout_ms: Optional[int], single_click: bool) -> AgentResult:
        if not self.is_initialized():
            raise CUAExecutionError("Computer use agent is not initialized", instruction)

        self.log_debug(f"CUA executing: '{instruction}' (maxSteps: {max_steps}, timeout: {timeout_ms}ms)")
        try:
            return await asyncio.wait_for(
                self._loop(instruction, max_steps, single_click),
                timeout=timeout_ms / 1000 if timeout_ms else None,
            )
        except asyncio.TimeoutError as e:
            raise CUAExecutionError(f"CUA execution timed out after {timeout_ms}ms", instruction) from e

    async def _loop(self, instruction: str, max_steps: int, single_click: bool) -> AgentResult:
        history = []
        for step in range(1, max_steps + 1):
            decision = await self._decide(instruction, history)
            kind = decision.get("action")
            reason = decision.get("reason", "")
            history.append(f"{step}. {kind} {reason}".strip())

            if kind == "click":
                await self.browser.click_at_position(int(decision.get("x", 0)), int(decision.get("y", 0)))
                if single_click:
                    return AgentResult(success=True, steps_executed=step, message=reason or None)
            elif kind == "press":
                await self.browser.press_key(resolve_key_name(str(decision.get("key", "Enter"))))
            elif kind == "done":
                return AgentResult(success=True, steps_executed=step, message=reason or None)
            elif kind == "fail":
                return AgentResult(success=False, steps_executed=step, message=reason or None)
            else:
                self.log_error(f"Unrecognized CUA decision: {decision}")

        return AgentResult(
            success=False,
            steps_executed=max_steps,
            message=f"Step budget of {max_steps} exhausted before the goal was reached",
        )

    async def _decide(self, instruction: str, history: list) -> Dict[str, Any]:
        image_data = base64.b64encode(await self.browser.screenshot_bytes()).decode()
        prompt = f"""{SYSTEM_PROMPT}

The screenshot is {settings.VIEWPORT_WIDTH}x{settings.VIEWPORT_HEIGHT} pixels.
Goal: {instruction}
Actions taken so far: {'; '.join(history) or 'none'}

{DECISION_FORMAT}"""

        response = await self.client.chat(
            model=self.model,
            messages=[{
                "role": "user",
                "content": prompt,
                "images": [image_data]
            }],
            format="json",
        )
        self._record_usage(response)
        return self._parse_decision(response["message"]["content"])

    def _parse_decision(self, content: str) -> Dict[str, Any]:
        start = content.find("{")
        end = content.rfind("}") + 1
        if start >= 0 and end > start:
            try:
                parsed = json.loads(content[start:end])
                if isinstance(parsed, dict):
                    return parsed
            except json.JSONDecodeError:
                pass
        return {"action": "unknown", "reason": truncate_text(content, 200)}

    def _record_usage(self, response: Any):
        input_tokens = response.get("prompt_eval_count") or 0
        output_tokens = response.get("eval_count") or 0
        self.usage.total_calls += 1
        self.usage.total_input_tokens += input_tokens
        self.usage.total_output_tokens += output_tokens
        self.usage.total_tokens += input_tokens + output_tokens


class CUACapability:
    """
    Whether the computer-use agent can be used for this run.

    Decided once by the service container. Actions ask for the agent
    through require() instead of checking for None.
    """

    def __init__(self, agent: Optional[ComputerUseAgent] = None, reason: str = ""):
        self._agent = agent
        self.reason = reason

    @classmethod
    def present(cls, agent: ComputerUseAgent) -> "CUACapability":
        return cls(agent=agent)

    @classmethod
    def absent(cls, reason: str) -> "CUACapability":
        return cls(agent=None, reason=reason)

    @property
    def available(self) -> bool:
        return self._agent is not None

    def require(self) -> ComputerUseAgent:
        if self._agent is None:
            raise CUAUnavailableError(f"Computer use agent unavailable: {self.reason}")
        return self._agent

    def usage(self) -> Optional[CUAUsage]:
        return self._agent.get_usage_metrics() if self._agent else None
