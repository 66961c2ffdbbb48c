"""
Reporter - builds the initial and final result documents
"""
import logging
from typing import List, Optional

from ..browser.artifact_capture import CaptureResult
from ..models.test_result import ActionTiming, CUAUsage, Evaluation, TestResult
from ..utils.errors import ISSUE_TYPES, Issue, create_issue
from ..utils.helpers import timestamp_now

logger = logging.getLogger(__name__)


def create_initial_result(
    url: str,
    config_path: Optional[str] = None,
    attempt: int = 1,
    screenshots_dir: Optional[str] = None
) -> TestResult:
    """The document written when a run attempt starts."""
    now = timestamp_now()
    return TestResult(
        status="running",
        url=url,
        config_path=config_path,
        attempt=attempt,
        started_at=now,
        timestamp=now,
        screenshots_dir=screenshots_dir,
    )


def issue_from_timing(timing: ActionTiming) -> Issue:
    """
    Turn a failed step into an issue. Step errors are stored as
    "<issue_type>: <message>".
    """
    issue_type, _, message = (timing.error or "").partition(": ")
    if issue_type not in ISSUE_TYPES:
        issue_type, message = "action_failed", timing.error or "Step failed"
    return create_issue(issue_type, f"action_{timing.action_index + 1}: {message}", timing.action_index)


def collect_issues(timings: List[ActionTiming], *extra: List[Issue]) -> List[Issue]:
    """Failed-step issues in step order, followed by session and capture issues."""
    issues = [issue_from_timing(t) for t in timings if not t.succeeded]
    for group in extra:
        issues.extend(group)
    return issues


def determine_status(timings: List[ActionTiming], error: Optional[str] = None) -> str:
    if error or any(not t.succeeded for t in timings):
        return "fail"
    return "pass"


def finalize_result(
    result: TestResult,
    timings: List[ActionTiming],
    capture_result: CaptureResult,
    issues: List[Issue],
    duration_ms: int,
    evaluation: Optional[Evaluation] = None,
    cua_usage: Optional[CUAUsage] = None,
    error: Optional[str] = None
) -> TestResult:
    """
    Fill in the terminal fields of a run's document.

    Args:
        result: The live document, as loaded from the writer
        timings: Every recorded step
        capture_result: Screenshots and the console log path
        issues: All run issues
        duration_ms: Run wall time
        evaluation: Playability evaluation, if it ran
        cua_usage: CUA usage metrics when the agent was available
        error: Run-level failure message

    Returns:
        The same document, updated
    """
    status = determine_status(timings, error)

    if evaluation is not None:
        score = evaluation.final_score
    elif timings:
        score = sum(1 for t in timings if t.succeeded) / len(timings)
    else:
        score = 0.0

    now = timestamp_now()
    result.status = status
    result.success = status == "pass"
    result.playability_score = round(score, 3)
    result.action_timings = sorted(timings, key=lambda t: t.action_index)
    result.issues = issues
    result.screenshots = [s.filename for s in capture_result.screenshots]
    result.logs = capture_result.logs_path
    result.evaluation = evaluation
    result.cua_usage = cua_usage
    result.error = error
    result.ended_at = now
    result.timestamp = now
    result.test_duration = round(duration_ms / 1000)

    logger.info(
        f"Test {status.upper()}: score {result.playability_score}, "
        f"{len(issues)} issue(s), {result.test_duration}s"
    )
    return result
