"""
Incremental Writer - keeps output.json current while a test runs
"""
import logging
import os
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..models.test_result import ActionMethods, ActionTiming, EvaluationStep, TestResult
from ..utils.errors import ObservabilityWriteError

logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "output.json"


class IncrementalWriter:
    """
    Sole writer of a session's output.json.

    Every update reads the current document, changes it and rewrites the
    whole file through a temp file and os.replace, so a reader polling the
    file only ever sees complete JSON. Incremental updates log and swallow
    their failures; a broken dashboard feed must not fail the test.
    """

    def __init__(self, session_dir: Path):
        self.session_dir = Path(session_dir)
        self.output_path = self.session_dir / OUTPUT_FILENAME
        self._lock = threading.Lock()

    def initialize(self, result: TestResult):
        """
        Write the initial document, replacing any previous one.

        Raises:
            ObservabilityWriteError: The document could not be written
        """
        self.session_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._write(result)

    def finalize(self, result: TestResult):
        """
        Write the terminal document.

        Raises:
            ObservabilityWriteError: The document could not be written
        """
        with self._lock:
            self._write(result)

    def load(self) -> TestResult:
        """
        Read the current document.

        Raises:
            ObservabilityWriteError: Missing or unreadable document
        """
        if not self.output_path.exists():
            raise ObservabilityWriteError(
                f"{self.output_path} does not exist; call initialize() before incremental updates",
                {"path": str(self.output_path)},
            )
        try:
            return TestResult.model_validate_json(self.output_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise ObservabilityWriteError(
                f"Failed to read {self.output_path}: {e}", {"path": str(self.output_path)}
            ) from e

    def add_action(self, timing: ActionTiming):
        """Record a step's terminal state. A repeated actionIndex replaces the earlier entry."""

        def apply(result: TestResult):
            timings = [t for t in result.action_timings if t.action_index != timing.action_index]
            timings.append(timing)
            result.action_timings = sorted(timings, key=lambda t: t.action_index)

        self._update("add action", apply)

    def add_evaluation_step(self, step: EvaluationStep):
        """Record an evaluation phase. Fields set on `step` merge into the live entry of its type."""

        def apply(result: TestResult):
            for index, existing in enumerate(result.evaluation_progress):
                if existing.type == step.type:
                    merged = existing.model_dump()
                    merged.update(step.model_dump(exclude_unset=True))
                    result.evaluation_progress[index] = EvaluationStep.model_validate(merged)
                    return
            result.evaluation_progress.append(step)

        self._update("add evaluation step", apply)

    def update_action_methods(self, cua: int, dom: int, none: int):
        def apply(result: TestResult):
            result.action_methods = ActionMethods(cua=cua, dom=dom, none=none)

        self._update("update action methods", apply)

    def update_run(self, **fields: Any):
        """Set top-level document fields, e.g. status or issues."""

        def apply(result: TestResult):
            for name, value in fields.items():
                setattr(result, name, value)

        self._update("update run", apply)

    def _update(self, operation: str, apply):
        with self._lock:
            try:
                result = self.load()
                apply(result)
                self._write(result)
            except Exception as e:
                logger.error(f"Failed to {operation}: {e}")

    def _write(self, result: TestResult):
        temp_path = self.output_path.with_name(f".{OUTPUT_FILENAME}.{os.getpid()}.tmp")
        try:
            temp_path.write_text(result.to_json(), encoding="utf-8")
            os.replace(temp_path, self.output_path)
        except OSError as e:
            raise ObservabilityWriteError(
                f"Failed to write {self.output_path}: {e}", {"path": str(self.output_path)}
            ) from e
        logger.debug(f"Updated {self.output_path}")
