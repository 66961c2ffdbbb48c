"""
Orchestrator Agent - executes a test spec against a live game session
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from .base_agent import BaseAgent
from .evaluator_agent import EvaluatorAgent
from ..actions.base_action import ActionContext
from ..actions.registry import ActionRegistry, create_action_registry
from ..config import settings
from ..models.test_result import METHODS, ActionMethods, ActionTiming, TestResult
from ..models.test_spec import CUA_ACTIONS
from ..reporting.reporter import collect_issues, create_initial_result, finalize_result
from ..utils.errors import (
    ActionTimeoutError,
    ConfigValidationError,
    FatalExecutionError,
    ObservabilityWriteError,
    RetryableExecutionError,
    RunFailedError,
    SessionInitializationError,
    SessionLoadError,
    SessionLostError,
    TotalTimeoutError,
    UnknownActionError,
    classify_error,
)
from ..utils.helpers import format_duration, now_ms, timestamp_now
from ..utils.retry import is_retryable_error, retry_with_backoff

NEVER_CUA = ("screenshot", "wait")

# Raised straight through the whole-run retry loop
RUN_FATAL = (UnknownActionError, ConfigValidationError)
SESSION_ERRORS = (SessionLostError, SessionLoadError, SessionInitializationError)


class RunState:
    """Mutable bookkeeping for one run attempt."""

    def __init__(self, started_ms: int):
        self.started_ms = started_ms
        self.timings: List[ActionTiming] = []
        self.methods = ActionMethods()
        self.error: Optional[str] = None

    def elapsed_ms(self) -> int:
        return now_ms() - self.started_ms


class OrchestratorAgent(BaseAgent):
    """
    Runs a test:
    - Loads the game and captures a baseline
    - Executes each step through its registered handler, choosing DOM or CUA
    - Retries failed steps, and whole runs when the session is lost
    - Streams every step to output.json, then evaluates and finalizes it
    """

    def __init__(
        self,
        container,
        registry: Optional[ActionRegistry] = None,
        evaluator: Optional[EvaluatorAgent] = None,
        enable_llm: bool = False,
        stop_on_failure: bool = False
    ):
        """
        Initialize the orchestrator.

        Args:
            container: ServiceContainer holding the run's collaborators
            registry: Step handlers, defaults to create_action_registry()
            evaluator: Playability evaluator
            enable_llm: Enable the LLM phase of the default evaluator
            stop_on_failure: Stop the sequence at the first failed step
        """
        super().__init__(
            name="Orchestrator",
            description="Executes test sequences against a game session"
        )
        self.container = container
        self.spec = container.spec
        self.registry = registry or create_action_registry()
        self.evaluator = evaluator or EvaluatorAgent(enable_llm=enable_llm)
        self.stop_on_failure = stop_on_failure

    async def execute(self, context: Dict[str, Any]) -> TestResult:
        """Execute orchestration."""
        return await self.run_test(
            url=context["url"],
            config_path=context.get("config_path"),
        )

    async def run_test(self, url: str, config_path: Optional[str] = None) -> TestResult:
        """
        Run the test, retrying the whole run when the session is lost.

        Args:
            url: Game URL
            config_path: Path of the config file, recorded in the result

        Returns:
            The final TestResult

        Raises:
            RunFailedError: Every attempt failed
            UnknownActionError: A step has no registered handler
        """
        attempts = 0

        async def attempt_run() -> TestResult:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                await self.container.reset_session()
            return await self.run_attempt(url, attempts, config_path)

        def on_retry(attempt: int, error: BaseException, delay_ms: int):
            message = f"Run attempt {attempt + 1} failed ({error}); retrying in {delay_ms}ms"
            self.log_warning(message)
            self.container.progress.warn(message)

        try:
            return await retry_with_backoff(
                attempt_run,
                max_attempts=self.spec.retries + 1,
                base_delay_ms=settings.RUN_RETRY_BASE_DELAY_MS,
                max_delay_ms=settings.RUN_RETRY_MAX_DELAY_MS,
                should_retry=self._is_run_retryable,
                on_retry=on_retry,
            )
        except RUN_FATAL:
            raise
        except Exception as e:
            self.log_error(f"Test run failed after {attempts} attempt(s): {e}")
            self.container.progress.fail(f"Test run failed: {e}")
            raise RunFailedError(attempts, e) from e

    async def run_attempt(self, url: str, attempt: int = 1, config_path: Optional[str] = None) -> TestResult:
        """One attempt: load, execute the sequence, evaluate, finalize."""
        container = self.container
        session, capture, writer, progress = (
            container.browser, container.capture, container.writer, container.progress
        )

        self.log_info(f"Starting run attempt {attempt} for {url}")
        state = RunState(now_ms())
        try:
            writer.initialize(create_initial_result(
                url, config_path, attempt, screenshots_dir=str(capture.screenshots_dir)
            ))
        except ObservabilityWriteError as e:
            self.log_error(f"Failed to write initial result: {e}")

        progress.start(f"Loading game: {url}")
        await session.load_game(url, self.spec)
        progress.succeed("Game loaded")
        await capture.capture_baseline(session)

        try:
            await self.execute_sequence(session, state)
        except (UnknownActionError, SessionLostError) as e:
            state.error = str(e)
            await self._finalize(url, config_path, attempt, state, evaluate=False)
            raise

        return await self._finalize(url, config_path, attempt, state, evaluate=True)

    async def execute_sequence(self, session, state: RunState):
        """
        Execute every step in order, recording one timing per step.

        Raises:
            UnknownActionError: A step has no handler
            SessionLostError: A step failed because the browser went away
        """
        steps = self.spec.sequence[:settings.MAX_SEQUENCE_STEPS]
        total = self.spec.timeouts.total

        for index, step in enumerate(steps):
            elapsed = state.elapsed_ms()
            if elapsed >= total:
                error = TotalTimeoutError(total, elapsed)
                self._record(state, ActionTiming(
                    action_index=index,
                    type=step.action,
                    started_at=timestamp_now(),
                    duration_ms=0,
                    method="none",
                    succeeded=False,
                    error=f"total_timeout: {error}",
                    attempts=0,
                ))
                state.error = f"total_timeout: {error}"
                self.log_error(f"{error}; skipping steps {index}-{len(steps) - 1}")
                self.container.progress.fail(str(error))
                return

            timing, failure = await self.execute_step(session, step, index, state)
            if timing.succeeded:
                continue

            if isinstance(failure, TotalTimeoutError):
                state.error = timing.error
                self.log_error(f"{failure}; skipping remaining steps")
                return

            if timing.error and timing.error.startswith("browser_crash"):
                raise SessionLostError(f"Browser session lost at step {index}: {failure or timing.error}") from failure

            if step.gate or self.stop_on_failure:
                reason = "gate step" if step.gate else "stop_on_failure"
                self.log_info(f"Step {index} failed ({reason}); skipping remaining steps")
                return

    async def execute_step(self, session, step, index: int, state: RunState) -> Tuple[ActionTiming, Optional[Exception]]:
        """
        Execute one step with action-level retry.

        Returns:
            The recorded timing and the final exception, if any
        """
        handler = self.registry.get(step.action)
        if handler is None:
            raise UnknownActionError(step.action, index)

        use_cua = self.should_use_cua(step)
        cua = self.container.cua
        if use_cua and not cua.available:
            self.log_warning(f"Step {index} ({step.action}) needs the computer-use agent, which is unavailable: {cua.reason}")

        context = ActionContext(
            spec=self.spec,
            action_index=index,
            capture=self.container.capture,
            cua=cua,
            use_cua=use_cua,
        )
        method = "cua" if use_cua else handler.native_method
        description = handler.get_description(step)
        total = self.spec.timeouts.total
        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            remaining = total - state.elapsed_ms()
            if remaining <= 0:
                raise TotalTimeoutError(total, state.elapsed_ms())
            limit = handler.get_attempt_timeout(step, context)
            bound = min(limit, remaining)
            try:
                return await asyncio.wait_for(handler.execute(session, step, context), timeout=bound / 1000)
            except asyncio.TimeoutError as e:
                if bound < limit:
                    raise TotalTimeoutError(total, state.elapsed_ms()) from e
                raise ActionTimeoutError(step.action, index, bound) from e

        self.container.progress.start(f"[{index + 1}/{len(self.spec.sequence)}] {description}")
        started_at = timestamp_now()
        started = now_ms()
        failure: Optional[Exception] = None
        error: Optional[str] = None

        try:
            result = await retry_with_backoff(
                attempt,
                max_attempts=self.spec.action_retries + 1,
                base_delay_ms=settings.ACTION_RETRY_BASE_DELAY_MS,
                max_delay_ms=settings.ACTION_RETRY_MAX_DELAY_MS,
                should_retry=self._is_step_retryable,
            )
        except Exception as e:
            failure = e
            succeeded = False
            error = f"{classify_error(e)}: {e}"
        else:
            succeeded = result.success
            if result.method and not use_cua:
                if result.method in METHODS:
                    method = result.method
                else:
                    self.log_warning(f"Step {index} ({step.action}) reported unknown method '{result.method}', recording {method}")
            if not succeeded:
                message = result.error or f"{step.action} step reported failure"
                error = f"{classify_error(message)}: {message}"

        timing = ActionTiming(
            action_index=index,
            type=step.action,
            started_at=started_at,
            duration_ms=now_ms() - started,
            method=method,
            succeeded=succeeded,
            error=error,
            attempts=attempts,
            description=description,
        )

        if succeeded:
            self.container.progress.succeed(f"[{index + 1}] {description} ({method}, {format_duration(timing.duration_ms)})")
        else:
            self.log_error(f"Step {index} ({step.action}) failed after {attempts} attempt(s): {error}")
            self.container.progress.fail(f"[{index + 1}] {description}: {error}")
            await self.container.capture.take_screenshot(session, f"error_action_{index}", index)

        self._record(state, timing)
        return timing, failure

    def should_use_cua(self, step) -> bool:
        """Hybrid policy: whether a step runs through the computer-use agent."""
        if step.action in NEVER_CUA:
            return False
        return (
            step.requests_cua
            or step.action == "agent"
            or (self.spec.always_cua and step.action in CUA_ACTIONS)
        )

    async def cleanup(self):
        await self.container.cleanup()

    def _record(self, state: RunState, timing: ActionTiming):
        state.timings.append(timing)
        state.methods.increment(timing.method)
        self.container.writer.add_action(timing)
        self.container.writer.update_action_methods(**state.methods.model_dump())

    async def _finalize(self, url: str, config_path: Optional[str], attempt: int, state: RunState, evaluate: bool) -> TestResult:
        container = self.container
        session, capture, writer = container.browser, container.capture, container.writer

        await capture.take_screenshot(session, "final", len(state.timings))
        console_logs = session.get_console_logs()
        logs_path = capture.save_console_logs(console_logs)
        capture_result = capture.get_result(logs_path)
        issues = collect_issues(state.timings, session.get_issues(), capture_result.issues)

        evaluation = None
        if evaluate:
            evaluation = await self.evaluator.evaluate(
                spec=self.spec,
                timings=state.timings,
                capture_result=capture_result,
                console_logs=console_logs,
                issues=issues,
                writer=writer,
            )

        try:
            result = writer.load()
        except ObservabilityWriteError as e:
            self.log_warning(f"Rebuilding result document: {e}")
            result = create_initial_result(url, config_path, attempt, screenshots_dir=str(capture.screenshots_dir))

        result = finalize_result(
            result,
            timings=state.timings,
            capture_result=capture_result,
            issues=issues,
            duration_ms=state.elapsed_ms(),
            evaluation=evaluation,
            cua_usage=container.cua.usage(),
            error=state.error,
        )
        try:
            writer.finalize(result)
        except ObservabilityWriteError as e:
            self.log_error(f"Failed to write final result: {e}")

        if result.status == "pass":
            container.progress.succeed(f"Test passed (score {result.playability_score})")
        else:
            container.progress.fail(f"Test failed (score {result.playability_score})")
        return result

    def _is_step_retryable(self, error: BaseException) -> bool:
        if isinstance(error, (TotalTimeoutError, UnknownActionError)):
            return False
        if isinstance(error, RetryableExecutionError):
            return True
        if isinstance(error, FatalExecutionError):
            return False
        return is_retryable_error(error)

    def _is_run_retryable(self, error: BaseException) -> bool:
        if isinstance(error, RUN_FATAL):
            return False
        if isinstance(error, SESSION_ERRORS):
            return True
        return is_retryable_error(error)
