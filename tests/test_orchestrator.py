"""Tests for sequence execution, the hybrid policy and both retry levels."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from playtest.actions import BaseAction
from playtest.agents.orchestrator_agent import OrchestratorAgent
from playtest.models.action_result import ActionResult
from playtest.utils.errors import ObservabilityWriteError, RunFailedError, SessionLoadError, UnknownActionError
from playtest.validation.validator import validate

from .conftest import FakeAgent, FakeSession

URL = "https://example.com/game"


def read_document(container):
    return json.loads(container.writer.output_path.read_text())


class FlakyLoadSession(FakeSession):
    """Fails to load the game a fixed number of times."""

    def __init__(self, failures, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    async def load_game(self, url, spec):
        if self.failures:
            self.failures -= 1
            raise SessionLoadError("Navigation timeout of 30000ms exceeded", url)
        await super().load_game(url, spec)


class SlowOncePress(BaseAction):
    """Press handler whose first attempt outlives the action timeout."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.calls = 0

    def get_action_type(self):
        return "press"

    def get_description(self, step):
        return f"Press {step.key}"

    async def execute(self, session, step, context):
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(self.delay)
        return ActionResult()


class MethodPress(BaseAction):
    def __init__(self, method):
        super().__init__()
        self.method = method

    def get_action_type(self):
        return "press"

    def get_description(self, step):
        return "press"

    async def execute(self, session, step, context):
        return ActionResult(method=self.method)


class TestSequenceExecution:
    """Happy-path execution and the result document."""

    @pytest.mark.asyncio
    async def test_one_timing_per_step(self, make_container):
        session = FakeSession(elements={"Start": 1})
        container = await make_container({
            "sequence": [
                {"action": "click", "target": "Start"},
                {"action": "press", "key": "Space"},
                {"wait": 10},
                {"action": "screenshot"},
            ]
        }, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.status == "pass"
        assert result.success is True
        assert [t.action_index for t in result.action_timings] == [0, 1, 2, 3]
        assert [t.method for t in result.action_timings] == ["dom", "dom", "none", "none"]
        assert all(t.attempts == 1 for t in result.action_timings)
        assert session.loaded == [URL]

    @pytest.mark.asyncio
    async def test_document_is_written_and_final(self, make_container):
        container = await make_container({"sequence": [{"action": "press", "key": "Enter"}, {"wait": 5}]})

        await OrchestratorAgent(container).run_test(URL, config_path="configs/demo.json")

        document = read_document(container)
        assert document["status"] == "pass"
        assert document["config_path"] == "configs/demo.json"
        assert len(document["action_timings"]) == 2
        assert document["action_methods"] == {"cua": 0, "dom": 1, "none": 1}
        assert document["ended_at"] is not None

    @pytest.mark.asyncio
    async def test_evaluation_is_recorded(self, make_container):
        container = await make_container({"sequence": [{"action": "screenshot"}]})

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.evaluation is not None
        assert result.playability_score == round(result.evaluation.final_score, 3)
        progress = read_document(container)["evaluation_progress"]
        assert progress[0]["type"] == "heuristic"
        assert progress[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_screenshots_collected(self, make_container):
        container = await make_container({"sequence": [{"action": "screenshot"}]})

        result = await OrchestratorAgent(container).run_test(URL)

        labels = [s.label for s in container.capture.get_screenshots()]
        assert labels == ["baseline", "action_0", "final"]
        assert len(result.screenshots) == 3


class TestHybridPolicy:
    """DOM/CUA selection per step."""

    @pytest.mark.asyncio
    async def test_always_cua_only_affects_eligible_steps(self, make_container):
        agent = FakeAgent()
        container = await make_container({
            "alwaysCUA": True,
            "sequence": [
                {"action": "click", "target": "Play"},
                {"action": "press", "key": "Space"},
                {"wait": 5},
                {"action": "screenshot"},
            ],
        }, agent=agent)

        result = await OrchestratorAgent(container).run_test(URL)

        assert [t.method for t in result.action_timings] == ["cua", "dom", "none", "none"]
        assert len(agent.instructions) == 1
        assert result.cua_usage.total_calls == 1

    @pytest.mark.asyncio
    async def test_cua_step_without_agent_still_reports_cua(self, make_container):
        container = await make_container(
            {"sequence": [{"action": "click", "target": "Play", "useCUA": True}]},
            agent=FakeAgent(init_error=RuntimeError("model llava not found")),
        )

        assert not container.cua.available

        result = await OrchestratorAgent(container).run_test(URL)

        timing = result.action_timings[0]
        assert timing.method == "cua"
        assert not timing.succeeded
        assert "unavailable" in timing.error
        assert result.status == "fail"
        assert read_document(container)["action_methods"]["cua"] == 1

    @pytest.mark.asyncio
    async def test_per_step_flag_triggers_cua_initialization(self, make_container):
        agent = FakeAgent(init_error=RuntimeError("no vision model"))
        container = await make_container(
            {"alwaysCUA": False, "sequence": [{"action": "screenshot"}, {"action": "click", "target": "start", "useCUA": True}]},
            agent=agent,
        )

        result = await OrchestratorAgent(container).run_test(URL)

        # The factory ran against the session even though alwaysCUA is off
        assert agent.browser is container.browser
        assert container.browser.initialized == 1
        assert container.cua.reason == "no vision model"
        assert [t.method for t in result.action_timings] == ["none", "cua"]

    @pytest.mark.asyncio
    async def test_agent_step_uses_cua(self, make_container):
        agent = FakeAgent()
        container = await make_container(
            {"sequence": [{"action": "agent", "instruction": "Reach level 2", "maxSteps": 5}]},
            agent=agent,
        )

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.action_timings[0].method == "cua"
        assert agent.instructions[0][:3] == ("agent", "Reach level 2", 5)

    def test_should_use_cua(self):
        container = SimpleNamespace(spec=validate({"alwaysCUA": True}))
        orchestrator = OrchestratorAgent(container)
        steps = validate({
            "sequence": [
                {"action": "click", "target": "A"},
                {"action": "click", "target": "B", "useCUA": False},
                {"action": "press", "key": "a"},
                {"action": "screenshot"},
                {"wait": 10},
            ]
        }).sequence

        assert [orchestrator.should_use_cua(s) for s in steps] == [True, True, False, False, False]

    def test_dom_by_default(self):
        container = SimpleNamespace(spec=validate({}))
        orchestrator = OrchestratorAgent(container)
        steps = validate({
            "sequence": [
                {"action": "click", "target": "A"},
                {"action": "click", "target": "B", "useCUA": True},
            ]
        }).sequence

        assert [orchestrator.should_use_cua(s) for s in steps] == [False, True]

    def test_flag_on_non_click_steps_is_ignored(self):
        container = SimpleNamespace(spec=validate({}))
        orchestrator = OrchestratorAgent(container)
        steps = validate({
            "sequence": [
                {"action": "screenshot", "useCUA": True},
                {"action": "wait", "durationMs": 10, "useCUA": True},
                {"action": "press", "key": "Enter", "useCUA": True},
                {"action": "observe", "target": "Score", "useCUA": True},
            ]
        }).sequence

        assert [orchestrator.should_use_cua(s) for s in steps] == [False, False, False, False]

    @pytest.mark.asyncio
    async def test_flagged_press_runs_on_dom(self, make_container):
        session = FakeSession()
        agent = FakeAgent()
        container = await make_container(
            {"sequence": [{"action": "press", "key": "Enter", "useCUA": True}]},
            session=session,
            agent=agent,
        )

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.action_timings[0].method == "dom"
        assert session.pressed == ["Enter"]
        assert agent.instructions == []


class TestActionRetry:
    """Per-step retry and failure handling."""

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, make_container):
        session = FakeSession()
        session.press_errors = [RuntimeError("Timeout 500ms exceeded")]
        container = await make_container({"sequence": [{"action": "press", "key": "Space"}]}, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        timing = result.action_timings[0]
        assert timing.succeeded
        assert timing.attempts == 2
        assert session.pressed == ["Space"]

    @pytest.mark.asyncio
    async def test_retry_budget_is_action_retries_plus_one(self, make_container):
        session = FakeSession()
        session.press_errors = [RuntimeError("Timeout 500ms exceeded")] * 5
        container = await make_container(
            {"actionRetries": 1, "sequence": [{"action": "press", "key": "Space"}]}, session=session
        )

        result = await OrchestratorAgent(container).run_test(URL)

        timing = result.action_timings[0]
        assert not timing.succeeded
        assert timing.attempts == 2
        assert timing.error.startswith("action_timeout:")

    @pytest.mark.asyncio
    async def test_attempt_over_action_timeout_is_retried(self, make_container):
        container = await make_container({
            "timeouts": {"action": 50},
            "sequence": [{"action": "press", "key": "Space"}],
        })
        orchestrator = OrchestratorAgent(container)
        handler = SlowOncePress(delay=1)
        orchestrator.registry.register(handler)

        result = await orchestrator.run_test(URL)

        timing = result.action_timings[0]
        assert timing.succeeded
        assert timing.attempts == 2
        assert handler.calls == 2
        assert timing.duration_ms < 1000

    @pytest.mark.asyncio
    async def test_action_timeout_exhausts_budget(self, make_container):
        container = await make_container({
            "timeouts": {"action": 20},
            "actionRetries": 0,
            "sequence": [{"action": "press", "key": "Space"}],
        })
        orchestrator = OrchestratorAgent(container)
        orchestrator.registry.register(SlowOncePress(delay=1))

        result = await orchestrator.run_test(URL)

        timing = result.action_timings[0]
        assert not timing.succeeded
        assert timing.attempts == 1
        assert timing.error == "action_timeout: Action 'press' at step 0 timed out after 20ms"

    @pytest.mark.asyncio
    async def test_unknown_reported_method_falls_back(self, make_container):
        container = await make_container({"sequence": [{"action": "press", "key": "Space"}]})
        orchestrator = OrchestratorAgent(container)
        orchestrator.registry.register(MethodPress("vision"))

        result = await orchestrator.run_test(URL)

        timing = result.action_timings[0]
        assert timing.succeeded
        assert timing.method == "dom"
        assert result.action_methods.dom == 1

    @pytest.mark.asyncio
    async def test_reported_method_is_recorded(self, make_container):
        container = await make_container({"sequence": [{"action": "press", "key": "Space"}]})
        orchestrator = OrchestratorAgent(container)
        orchestrator.registry.register(MethodPress("none"))

        result = await orchestrator.run_test(URL)

        assert result.action_timings[0].method == "none"

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self, make_container):
        session = FakeSession()
        session.press_errors = [ValueError("Unknown key: Hyper")]
        container = await make_container({"sequence": [{"action": "press", "key": "Space"}]}, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        timing = result.action_timings[0]
        assert timing.attempts == 1
        assert timing.error == "action_failed: Unknown key: Hyper"
        assert result.issues[0].type == "action_failed"

    @pytest.mark.asyncio
    async def test_failure_continues_by_default(self, make_container):
        session = FakeSession()
        session.click_text_error = RuntimeError("strict mode violation")
        container = await make_container({
            "sequence": [{"action": "click", "target": "Missing"}, {"action": "screenshot"}]
        }, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        assert [t.succeeded for t in result.action_timings] == [False, True]
        assert result.action_timings[0].error.startswith("selector_not_found:")
        assert result.status == "fail"

    @pytest.mark.asyncio
    async def test_failed_step_takes_error_screenshot(self, make_container):
        session = FakeSession()
        session.click_text_error = RuntimeError("strict mode violation")
        container = await make_container({"sequence": [{"action": "click", "target": "Missing"}]}, session=session)

        await OrchestratorAgent(container).run_test(URL)

        labels = [s.label for s in container.capture.get_screenshots()]
        assert "error_action_0" in labels

    @pytest.mark.asyncio
    async def test_gate_stops_sequence(self, make_container):
        session = FakeSession()
        session.click_text_error = RuntimeError("strict mode violation")
        container = await make_container({
            "sequence": [
                {"action": "click", "target": "Missing", "gate": True},
                {"action": "screenshot"},
            ]
        }, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        assert len(result.action_timings) == 1

    @pytest.mark.asyncio
    async def test_stop_on_failure(self, make_container):
        session = FakeSession()
        session.press_errors = [ValueError("bad key")]
        container = await make_container({
            "sequence": [{"action": "press", "key": "a"}, {"action": "press", "key": "b"}]
        }, session=session)

        result = await OrchestratorAgent(container, stop_on_failure=True).run_test(URL)

        assert len(result.action_timings) == 1
        assert session.pressed == []


class TestRunLevel:
    """Run-level failures and whole-run retry."""

    @pytest.mark.asyncio
    async def test_unknown_action_aborts_without_retry(self, make_container):
        session = FakeSession()
        container = await make_container({
            "retries": 3,
            "sequence": [{"action": "screenshot"}, {"action": "press", "key": "a"}],
        }, session=session)
        orchestrator = OrchestratorAgent(container)
        orchestrator.registry.unregister("press")

        with pytest.raises(UnknownActionError) as exc_info:
            await orchestrator.run_test(URL)

        assert exc_info.value.action_index == 1
        assert session.loaded == [URL]
        document = read_document(container)
        assert document["status"] == "fail"
        assert "Unknown action type 'press'" in document["error"]
        assert len(document["action_timings"]) == 1

    @pytest.mark.asyncio
    async def test_total_timeout_skips_remaining_steps(self, make_container):
        container = await make_container({
            "timeouts": {"total": 50},
            "sequence": [{"wait": 2000}, {"action": "press", "key": "a"}],
        })

        result = await OrchestratorAgent(container).run_test(URL)

        assert len(result.action_timings) == 1
        timing = result.action_timings[0]
        assert not timing.succeeded
        assert timing.error.startswith("total_timeout:")
        assert result.status == "fail"
        assert result.error.startswith("total_timeout:")

    @pytest.mark.asyncio
    async def test_load_failure_retries_the_run(self, make_container):
        session = FlakyLoadSession(failures=1)
        container = await make_container({"retries": 2, "sequence": [{"action": "screenshot"}]}, session=session)

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.status == "pass"
        assert result.attempt == 2
        assert session.restarts == 1

    @pytest.mark.asyncio
    async def test_run_retry_budget_is_retries_plus_one(self, make_container):
        session = FlakyLoadSession(failures=10)
        container = await make_container({"retries": 2, "sequence": [{"action": "screenshot"}]}, session=session)

        with pytest.raises(RunFailedError) as exc_info:
            await OrchestratorAgent(container).run_test(URL)

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, SessionLoadError)
        assert session.restarts == 2

    @pytest.mark.asyncio
    async def test_browser_crash_restarts_the_run(self, make_container):
        session = FakeSession()
        session.press_errors = [RuntimeError("Target closed")] * 10
        container = await make_container({
            "retries": 1,
            "sequence": [{"action": "press", "key": "a"}, {"action": "screenshot"}],
        }, session=session)

        with pytest.raises(RunFailedError) as exc_info:
            await OrchestratorAgent(container).run_test(URL)

        assert exc_info.value.attempts == 2
        assert session.restarts == 1
        document = read_document(container)
        assert document["status"] == "fail"
        assert document["attempt"] == 2
        assert document["action_timings"][0]["error"].startswith("browser_crash:")

    @pytest.mark.asyncio
    async def test_zero_retries_runs_once(self, make_container):
        session = FlakyLoadSession(failures=1)
        container = await make_container({"retries": 0, "sequence": [{"action": "screenshot"}]}, session=session)

        with pytest.raises(RunFailedError) as exc_info:
            await OrchestratorAgent(container).run_test(URL)

        assert exc_info.value.attempts == 1
        assert session.restarts == 0

    @pytest.mark.asyncio
    async def test_initial_document_write_failure_is_not_fatal(self, make_container, monkeypatch):
        container = await make_container({"retries": 0, "sequence": [{"action": "screenshot"}]})

        def disk_full(result):
            raise ObservabilityWriteError("disk full")

        monkeypatch.setattr(container.writer, "initialize", disk_full)

        result = await OrchestratorAgent(container).run_test(URL)

        assert result.status == "pass"
        assert result.attempt == 1
        assert len(result.action_timings) == 1
        assert read_document(container)["status"] == "pass"
