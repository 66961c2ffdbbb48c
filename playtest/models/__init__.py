"""Models package"""
from .action_result import ActionResult, AgentResult
from .test_result import ActionMethods, ActionTiming, EvaluationStep, ScreenshotMetadata, TestResult
from .test_spec import (
    AgentStep,
    AxisStep,
    ClickStep,
    DomOptimization,
    ObserveStep,
    PressStep,
    ScreenshotStep,
    Step,
    TestSpec,
    Timeouts,
    WaitStep,
)

__all__ = [
    "ActionResult",
    "AgentResult",
    "ActionMethods",
    "ActionTiming",
    "EvaluationStep",
    "ScreenshotMetadata",
    "TestResult",
    "AgentStep",
    "AxisStep",
    "ClickStep",
    "DomOptimization",
    "ObserveStep",
    "PressStep",
    "ScreenshotStep",
    "Step",
    "TestSpec",
    "Timeouts",
    "WaitStep",
]
