"""
Error taxonomy - exception hierarchy, issue types and error classification
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .helpers import timestamp_now


ISSUE_TYPES = (
    "load_timeout",
    "action_timeout",
    "action_failed",
    "screenshot_failed",
    "log_failed",
    "browser_crash",
    "selector_not_found",
    "headless_incompatibility",
    "total_timeout",
)


class Issue(BaseModel):
    """A problem observed during a run, surfaced in the result document."""

    type: str
    description: str
    timestamp: str
    actionIndex: Optional[int] = None


def create_issue(issue_type: str, description: str, action_index: Optional[int] = None) -> Issue:
    """Create a new issue stamped with the current time."""
    return Issue(
        type=issue_type,
        description=description,
        timestamp=timestamp_now(),
        actionIndex=action_index,
    )


def classify_error(error: Any, is_load: bool = False) -> str:
    """
    Classify an error by its message text.

    Args:
        error: Exception or message
        is_load: Whether the error happened while loading the game

    Returns:
        One of ISSUE_TYPES
    """
    message = str(error).lower()

    if isinstance(error, TotalTimeoutError):
        return "total_timeout"

    if "timeout" in message or "timed out" in message:
        return "load_timeout" if is_load else "action_timeout"

    if any(kw in message for kw in (
        "browser crash", "cdp", "connection closed", "transport closed",
        "socket", "target closed", "browser has been closed",
    )):
        return "browser_crash"

    if any(kw in message for kw in ("selector", "element not found", "could not find", "not found")):
        return "selector_not_found"

    if "screenshot" in message:
        return "screenshot_failed"

    if "log" in message or "console" in message:
        return "log_failed"

    return "action_failed"


class QATestError(Exception):
    """Base error for the test execution engine."""

    code = "QA_TEST_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


class ConfigLoadError(QATestError):
    code = "CONFIG_LOAD_ERROR"

    def __init__(self, message: str, config_path: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, {**(context or {}), "config_path": config_path})
        self.config_path = config_path


class ConfigValidationError(QATestError):
    """Structural or semantic config defects. Raised before any session work."""

    code = "CONFIG_VALIDATION_ERROR"

    def __init__(self, issues: List[str], context: Optional[Dict[str, Any]] = None):
        message = "Invalid test config: " + "; ".join(issues)
        super().__init__(message, {**(context or {}), "issues": issues})
        self.issues = issues


class UnknownActionError(QATestError):
    """A step references an action type with no registered handler."""

    code = "UNKNOWN_ACTION"

    def __init__(self, action_type: str, action_index: int):
        super().__init__(
            f"Unknown action type '{action_type}' at step {action_index}",
            {"action_type": action_type, "action_index": action_index},
        )
        self.action_type = action_type
        self.action_index = action_index


class RetryableExecutionError(QATestError):
    code = "RETRYABLE_EXECUTION_ERROR"


class FatalExecutionError(QATestError):
    code = "FATAL_EXECUTION_ERROR"


class ActionTimeoutError(RetryableExecutionError):
    code = "ACTION_TIMEOUT"

    def __init__(self, action_type: str, action_index: int, timeout_ms: int):
        super().__init__(
            f"Action '{action_type}' at step {action_index} timed out after {timeout_ms}ms",
            {"action_type": action_type, "action_index": action_index, "timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class TotalTimeoutError(FatalExecutionError):
    code = "TOTAL_TIMEOUT"

    def __init__(self, timeout_ms: int, elapsed_ms: int):
        super().__init__(
            f"Total timeout of {timeout_ms}ms exceeded after {elapsed_ms / 1000:.1f}s",
            {"timeout_ms": timeout_ms, "elapsed_ms": elapsed_ms},
        )


class ElementNotFoundError(FatalExecutionError):
    code = "ELEMENT_NOT_FOUND"

    def __init__(self, target: str):
        super().__init__(f"Element not found: {target}", {"target": target})
        self.target = target


class SessionInitializationError(QATestError):
    code = "SESSION_INIT_ERROR"


class SessionLoadError(QATestError):
    code = "SESSION_LOAD_ERROR"

    def __init__(self, message: str, url: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, {**(context or {}), "url": url})
        self.url = url


class SessionLostError(RetryableExecutionError):
    """The browser session died mid-run; the whole run may be restarted."""

    code = "SESSION_LOST"


class CUAInitializationError(QATestError):
    code = "CUA_INIT_ERROR"


class CUAUnavailableError(FatalExecutionError):
    code = "CUA_UNAVAILABLE"


class CUAExecutionError(FatalExecutionError):
    code = "CUA_EXECUTION_ERROR"

    def __init__(self, message: str, instruction: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, {**(context or {}), "instruction": instruction})
        self.instruction = instruction


class ObservabilityWriteError(QATestError):
    """Incremental result-document failures. Always logged and swallowed."""

    code = "OBSERVABILITY_WRITE_ERROR"


class RunFailedError(QATestError):
    """The whole-run retry budget is exhausted."""

    code = "RUN_FAILED"

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(
            f"Test run failed after {attempts} attempt(s): {last_error}",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error
