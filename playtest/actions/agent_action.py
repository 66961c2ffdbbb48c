"""
Agent Action - autonomous multi-step play through the computer-use agent
"""
from .base_action import ActionContext, BaseAction
from ..models.action_result import ActionResult
from ..models.test_spec import AgentStep
from ..utils.helpers import truncate_text

DEFAULT_MAX_STEPS = 20


class AgentAction(BaseAction):
    native_method = "cua"

    def get_action_type(self) -> str:
        return "agent"

    def get_description(self, step: AgentStep) -> str:
        return f"Agent: {step.instruction or 'Execute task'}"

    def get_attempt_timeout(self, step: AgentStep, context: ActionContext) -> int:
        # Autonomous play gets far longer than a single input
        timeout = super().get_attempt_timeout(step, context)
        return max(timeout * 8, context.spec.timeouts.total)

    async def execute(self, session, step: AgentStep, context: ActionContext) -> ActionResult:
        agent = context.cua.require()
        max_steps = step.max_steps or DEFAULT_MAX_STEPS
        timeout = self.get_attempt_timeout(step, context)

        self.logger.info(f"Executing agent task: '{truncate_text(step.instruction)}' (maxSteps: {max_steps})")
        outcome = await agent.execute_agent(step.instruction, max_steps=max_steps, timeout_ms=timeout)
        self.logger.info(
            f"Agent task finished: success={outcome.success}, steps={outcome.steps_executed}"
        )

        return ActionResult(
            success=outcome.success,
            method="cua",
            agent_result=outcome,
            error=None if outcome.success else f"Agent did not complete the task: {outcome.message}",
        )
