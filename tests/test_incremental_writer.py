"""Tests for the incremental output.json writer."""

import json

import pytest

from playtest.models.test_result import ActionTiming, EvaluationStep, TestResult
from playtest.reporting.incremental_writer import IncrementalWriter
from playtest.reporting.reporter import create_initial_result
from playtest.utils.errors import ObservabilityWriteError


def timing(index, succeeded=True, method="dom", error=None):
    return ActionTiming(
        actionIndex=index,
        type="click",
        startedAt="2024-01-01T00:00:00+00:00",
        durationMs=120,
        method=method,
        succeeded=succeeded,
        error=error,
    )


@pytest.fixture
def writer(tmp_path):
    writer = IncrementalWriter(tmp_path / "session")
    writer.initialize(create_initial_result("https://example.com/game", attempt=1))
    return writer


def read_document(writer):
    return json.loads(writer.output_path.read_text())


class TestIncrementalWriter:
    """Tests for IncrementalWriter."""

    def test_initialize_writes_running_document(self, writer):
        document = read_document(writer)

        assert document["status"] == "running"
        assert document["url"] == "https://example.com/game"
        assert document["action_timings"] == []

    def test_add_action_uses_camel_case(self, writer):
        writer.add_action(timing(0))

        entry = read_document(writer)["action_timings"][0]
        assert entry["actionIndex"] == 0
        assert entry["durationMs"] == 120
        assert entry["method"] == "dom"

    def test_duplicate_action_index_replaces(self, writer):
        writer.add_action(timing(0, succeeded=False, error="action_failed: boom"))
        writer.add_action(timing(0, succeeded=True))

        timings = read_document(writer)["action_timings"]
        assert len(timings) == 1
        assert timings[0]["succeeded"] is True

    def test_actions_kept_in_index_order(self, writer):
        writer.add_action(timing(2))
        writer.add_action(timing(0))
        writer.add_action(timing(1))

        assert [t["actionIndex"] for t in read_document(writer)["action_timings"]] == [0, 1, 2]

    def test_evaluation_step_merges_by_type(self, writer):
        writer.add_evaluation_step(EvaluationStep(type="heuristic", status="in_progress", timestamp="t0"))
        writer.add_evaluation_step(EvaluationStep(type="heuristic", status="completed", score=0.8, executionTime=12))

        progress = read_document(writer)["evaluation_progress"]
        assert progress == [{
            "type": "heuristic",
            "status": "completed",
            "score": 0.8,
            "executionTime": 12,
            "timestamp": "t0",
        }]

    def test_update_action_methods(self, writer):
        writer.update_action_methods(cua=1, dom=2, none=3)

        assert read_document(writer)["action_methods"] == {"cua": 1, "dom": 2, "none": 3}

    def test_update_run(self, writer):
        writer.update_run(status="fail", error="boom")

        document = read_document(writer)
        assert document["status"] == "fail"
        assert document["error"] == "boom"

    def test_load_round_trip(self, writer):
        writer.add_action(timing(0))

        result = writer.load()

        assert isinstance(result, TestResult)
        assert result.action_timings[0].action_index == 0

    def test_missing_document_load_raises(self, tmp_path):
        writer = IncrementalWriter(tmp_path / "nowhere")

        with pytest.raises(ObservabilityWriteError, match="does not exist"):
            writer.load()

    def test_incremental_failures_are_swallowed(self, tmp_path):
        writer = IncrementalWriter(tmp_path / "nowhere")

        writer.add_action(timing(0))
        writer.update_action_methods(0, 1, 0)

        assert not writer.output_path.exists()

    def test_no_temp_files_left(self, writer):
        writer.add_action(timing(0))

        assert [p.name for p in writer.session_dir.iterdir()] == ["output.json"]
