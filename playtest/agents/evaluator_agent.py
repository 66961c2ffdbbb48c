"""
Evaluator Agent - scores playability from the run's evidence
"""
import json
from typing import Any, Dict, List, Optional, Tuple

import ollama

from .base_agent import BaseAgent
from ..browser.artifact_capture import CaptureResult
from ..config import settings
from ..models.test_result import ActionTiming, Evaluation, EvaluationStep
from ..models.test_spec import TestSpec
from ..utils.errors import Issue
from ..utils.helpers import now_ms, timestamp_now

ISSUE_WEIGHTS = {
    "browser_crash": 0.5,
    "load_timeout": 0.4,
    "action_timeout": 0.2,
    "action_failed": 0.1,
    "selector_not_found": 0.15,
    "screenshot_failed": 0.05,
    "log_failed": 0.05,
    "headless_incompatibility": 0.1,
    "total_timeout": 0.5,
}
DEFAULT_ISSUE_WEIGHT = 0.1

LLM_WEIGHT = 0.4
LOW_CONFIDENCE_LLM_WEIGHT = 0.2
LOW_CONFIDENCE = 0.5

CRITICAL_ERROR_MARKERS = ("typeerror", "referenceerror", "syntaxerror")


def calculate_heuristic_score(
    timings: List[ActionTiming],
    capture_result: CaptureResult,
    console_logs: List[str],
    issues: List[Issue]
) -> Tuple[float, Dict[str, Any]]:
    """
    Score a run from step outcomes, captured evidence and console noise.

    Args:
        timings: Timeline entries for the executed steps
        capture_result: Screenshots and capture issues
        console_logs: "[type] text" console lines
        issues: Every issue recorded during the run

    Returns:
        (score in [0, 1], metrics used to reach it)
    """
    total = max(len(timings), 1)
    successful = sum(1 for t in timings if t.succeeded)

    load_check = len(capture_result.screenshots) > 0

    lowered = [log.lower() for log in console_logs]
    error_count = sum(1 for log in lowered if "[error]" in log)
    warning_count = sum(1 for log in lowered if "[warning]" in log)
    critical_errors = sum(1 for log in lowered if any(m in log for m in CRITICAL_ERROR_MARKERS))
    responsiveness = max(0.0, 1 - (error_count * 0.1 + critical_errors * 0.2))

    stability = not any(issue.type == "browser_crash" for issue in issues)

    weighted_issues = sum(ISSUE_WEIGHTS.get(issue.type, DEFAULT_ISSUE_WEIGHT) for issue in issues)
    score = (successful / total) * (1 - min(weighted_issues / total, 0.5))

    if not load_check:
        score *= 0.5
    if not stability:
        score *= 0.3
    score *= 0.8 + responsiveness * 0.2

    score = max(0.0, min(1.0, score))
    metrics = {
        "load_check": load_check,
        "responsiveness": responsiveness,
        "stability": stability,
        "console_errors": error_count,
        "console_warnings": warning_count,
        "successful_actions": successful,
        "total_actions": len(timings),
    }
    return score, metrics


def combine_scores(heuristic: float, llm_score: Optional[float], llm_confidence: Optional[float]) -> float:
    """Blend the LLM score into the heuristic one, trusting it less when it is unsure."""
    if llm_score is None:
        return heuristic
    confidence = 1.0 if llm_confidence is None else llm_confidence
    weight = LOW_CONFIDENCE_LLM_WEIGHT if confidence < LOW_CONFIDENCE else LLM_WEIGHT
    adjusted = llm_score * confidence
    return max(0.0, min(1.0, heuristic * (1 - weight) + adjusted * weight))


class EvaluatorAgent(BaseAgent):
    """
    Produces the run's Evaluation:
    - Heuristic score from step outcomes and console logs
    - Optional LLM review of the same evidence via ollama
    Each phase is streamed to the result document as it starts and ends.
    """

    def __init__(self, enable_llm: bool = False, client: Any = None, model: str = None):
        super().__init__(
            name="Evaluator",
            description="Scores game playability from test evidence"
        )
        self.enable_llm = enable_llm
        self.model = model or settings.OLLAMA_TEXT_MODEL
        self.client = client or (ollama.AsyncClient(host=settings.OLLAMA_HOST) if enable_llm else None)

    async def execute(self, context: Dict[str, Any]) -> Evaluation:
        return await self.evaluate(**context)

    async def evaluate(
        self,
        spec: TestSpec,
        timings: List[ActionTiming],
        capture_result: CaptureResult,
        console_logs: List[str],
        issues: List[Issue],
        writer=None
    ) -> Evaluation:
        """
        Run the evaluation phases.

        Args:
            spec: The test spec (genre hints for the LLM)
            timings: Timeline entries
            capture_result: Captured evidence
            console_logs: Console lines
            issues: Run issues
            writer: IncrementalWriter receiving phase progress

        Returns:
            The combined Evaluation
        """
        self._progress(writer, EvaluationStep(type="heuristic", status="in_progress", timestamp=timestamp_now()))
        started = now_ms()
        heuristic, metrics = calculate_heuristic_score(timings, capture_result, console_logs, issues)
        self._progress(writer, EvaluationStep(
            type="heuristic",
            status="completed",
            score=heuristic,
            execution_time=now_ms() - started,
            timestamp=timestamp_now(),
        ))
        self.log_info(f"Heuristic score: {heuristic:.2f}")

        llm_score = llm_confidence = None
        llm_issues: List[str] = []
        if self.enable_llm:
            self._progress(writer, EvaluationStep(type="llm", status="in_progress", timestamp=timestamp_now()))
            started = now_ms()
            try:
                llm_score, llm_confidence, llm_issues = await self.evaluate_with_llm(
                    spec, timings, console_logs
                )
            except Exception as e:
                self.log_error(f"LLM evaluation failed: {e}")
                self._progress(writer, EvaluationStep(
                    type="llm",
                    status="failed",
                    execution_time=now_ms() - started,
                    timestamp=timestamp_now(),
                ))
            else:
                self._progress(writer, EvaluationStep(
                    type="llm",
                    status="completed",
                    score=llm_score,
                    execution_time=now_ms() - started,
                    timestamp=timestamp_now(),
                ))
                self.log_info(f"LLM score: {llm_score:.2f} (confidence {llm_confidence:.2f})")

        return Evaluation(
            heuristic_score=heuristic,
            llm_score=llm_score,
            llm_confidence=llm_confidence,
            llm_issues=llm_issues,
            final_score=combine_scores(heuristic, llm_score, llm_confidence),
            metrics=metrics,
        )

    async def evaluate_with_llm(
        self,
        spec: TestSpec,
        timings: List[ActionTiming],
        console_logs: List[str]
    ) -> Tuple[float, float, List[str]]:
        """Ask the text model for a playability score, issues and confidence."""
        failed = [t for t in timings if not t.succeeded]
        action_errors = [t.error for t in failed if t.error][:5]
        errors = [log for log in console_logs if "[error]" in log.lower()][:5]
        warnings = [log for log in console_logs if "[warning]" in log.lower()][:5]
        genre = spec.metadata.genre if spec.metadata and spec.metadata.genre else "unknown"

        prompt = f"""You are a QA expert analyzing browser game test sessions.
Evaluate playability based on loading, controls, and completion.

Game Genre: {genre}
Total Actions: {len(timings)}
Successful Actions: {len(timings) - len(failed)}
Failed Actions: {len(failed)}

Action Errors:
{chr(10).join(action_errors) or 'none'}

Console Errors:
{chr(10).join(errors) or 'none'}

Console Warnings:
{chr(10).join(warnings) or 'none'}

Respond in JSON format:
{{"playability_score": <0-1>, "issues": ["..."], "confidence": <0-1>}}"""

        response = await self.client.chat(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            format="json",
        )
        content = response["message"]["content"]

        start = content.find("{")
        end = content.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError(f"LLM evaluation returned no JSON: {content[:200]}")
        parsed = json.loads(content[start:end])

        score = max(0.0, min(1.0, float(parsed.get("playability_score", 0))))
        confidence = max(0.0, min(1.0, float(parsed.get("confidence", 0))))
        return score, confidence, [str(i) for i in parsed.get("issues", [])]

    def _progress(self, writer, step: EvaluationStep):
        if writer is not None:
            writer.add_evaluation_step(step)
