"""
Config Validator - structural schema validation plus semantic checks
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..config import settings
from ..models.test_spec import CUA_ACTIONS, AgentStep, AxisStep, ClickStep, ObserveStep, PressStep, TestSpec, WaitStep
from ..utils.controls import validate_controls
from ..utils.errors import ConfigLoadError, ConfigValidationError

logger = logging.getLogger(__name__)

MAX_PRESS_REPEAT = 100
MAX_HOLD_DURATION_MS = 10000


class ValidationIssue(BaseModel):
    level: Literal["error", "warning", "info"]
    message: str
    suggestions: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.level == "warning"]


class ConfigValidator:
    """
    Semantic checks that run after the structural schema has parsed.

    Errors make the config unusable. Warnings point at configs that will
    run, but probably not the way the author meant.
    """

    def __init__(self, max_steps: int = None, cua_enabled: bool = None):
        self.max_steps = max_steps or settings.MAX_SEQUENCE_STEPS
        self.cua_enabled = settings.CUA_ENABLED if cua_enabled is None else cua_enabled

    def validate(self, spec: TestSpec) -> ValidationResult:
        issues: List[ValidationIssue] = []

        for group in self._consecutive_waits(spec):
            issues.append(ValidationIssue(
                level="warning",
                message=f"Consecutive wait steps at positions {', '.join(map(str, group))} could be combined",
                suggestions=["Replace them with a single wait of the summed duration"],
            ))

        for index, step in enumerate(spec.sequence):
            issues.extend(self._check_step(index, step))

        if len(spec.sequence) > self.max_steps:
            issues.append(ValidationIssue(
                level="warning",
                message=f"Sequence has {len(spec.sequence)} steps; only the first {self.max_steps} will run",
            ))

        if spec.timeouts.action > spec.timeouts.total:
            issues.append(ValidationIssue(
                level="warning",
                message="Action timeout is greater than total timeout",
                suggestions=["Ensure timeouts.action is less than timeouts.total"],
            ))
        if spec.timeouts.load > spec.timeouts.total:
            issues.append(ValidationIssue(
                level="warning",
                message="Load timeout is greater than total timeout",
            ))

        if spec.controls:
            for warning in validate_controls(spec.controls):
                issues.append(ValidationIssue(level="warning", message=warning))

        if spec.dom_optimization:
            selectors = spec.dom_optimization.hide_selectors + spec.dom_optimization.remove_selectors
            if any(not s.strip() for s in selectors):
                issues.append(ValidationIssue(level="error", message="domOptimization: blank selector"))

        if spec.needs_cua() and not self.cua_enabled:
            issues.append(ValidationIssue(
                level="warning",
                message="Config requests the computer-use agent but CUA_ENABLED is off",
                suggestions=["Set CUA_ENABLED=true or remove useCUA/agent steps"],
            ))

        return ValidationResult(issues=issues)

    def _check_step(self, index: int, step) -> List[ValidationIssue]:
        issues = []

        def error(message):
            issues.append(ValidationIssue(level="error", message=f"sequence.{index}: {message}"))

        def warning(message):
            issues.append(ValidationIssue(level="warning", message=f"sequence.{index}: {message}"))

        if step.use_cua and step.action not in CUA_ACTIONS:
            warning(f"useCUA is ignored for {step.action} steps")

        if isinstance(step, (ClickStep, ObserveStep)) and not step.target.strip():
            error(f"{step.action} step requires a non-empty target")

        elif isinstance(step, AgentStep) and not step.instruction.strip():
            error("agent step requires a non-empty instruction")

        elif isinstance(step, PressStep):
            if step.key is not None and not step.key.strip():
                error("press step has a blank key")
            if step.alternate_keys and any(not k.strip() for k in step.alternate_keys):
                error("press step has a blank entry in alternateKeys")
            if step.repeat and step.repeat > MAX_PRESS_REPEAT:
                warning(f"repeat {step.repeat} will be clamped to {MAX_PRESS_REPEAT}")
            if step.duration and step.duration > MAX_HOLD_DURATION_MS:
                warning(f"hold duration {step.duration}ms exceeds {MAX_HOLD_DURATION_MS}ms")

        elif isinstance(step, AxisStep):
            if step.duration and step.duration > MAX_HOLD_DURATION_MS:
                warning(f"axis duration {step.duration}ms will be clamped to {MAX_HOLD_DURATION_MS}ms")
            if step.keys is not None and not step.keys:
                error("axis step has an empty keys list")

        return issues

    def _consecutive_waits(self, spec: TestSpec) -> List[List[int]]:
        groups, current = [], []
        for index, step in enumerate(spec.sequence):
            if isinstance(step, WaitStep):
                current.append(index)
                continue
            if len(current) > 1:
                groups.append(current)
            current = []
        if len(current) > 1:
            groups.append(current)
        return groups


def format_validation_errors(exc: ValidationError) -> List[str]:
    """One "field.path: message" line per pydantic error."""
    issues = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        issues.append(f"{location}: {err['msg']}" if location else err["msg"])
    return issues


def validate(raw: Any, validator: Optional[ConfigValidator] = None) -> TestSpec:
    """
    Validate a raw config structure into a TestSpec.

    Args:
        raw: Parsed JSON config
        validator: Semantic validator, defaults to ConfigValidator()

    Returns:
        The validated, immutable TestSpec

    Raises:
        ConfigValidationError: Listing every structural or semantic error
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError([f"config: expected an object, got {type(raw).__name__}"])

    try:
        spec = TestSpec.model_validate(raw)
    except ValidationError as e:
        issues = format_validation_errors(e)
        logger.error(f"Config validation failed: {issues}")
        raise ConfigValidationError(issues) from e

    result = (validator or ConfigValidator()).validate(spec)
    for issue in result.warnings:
        logger.warning(f"Config warning: {issue.message}")
    if not result.valid:
        issues = [issue.message for issue in result.errors]
        logger.error(f"Config validation failed: {issues}")
        raise ConfigValidationError(issues)

    return spec


def load_test_spec(config_path: Union[str, Path, None] = None) -> TestSpec:
    """
    Load and validate a JSON config file. No path gives the default spec.

    Raises:
        ConfigLoadError: File missing or not valid JSON
        ConfigValidationError: Config does not validate
    """
    if not config_path:
        logger.info("No config file provided, using default config")
        return validate({})

    path = Path(config_path)
    try:
        raw: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigLoadError(f"Failed to load config file: {e}", str(path)) from e

    return validate(raw)
