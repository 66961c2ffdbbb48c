"""
Action Result Data Model
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AgentResult(BaseModel):
    """Outcome reported by the computer-use agent."""

    success: bool
    steps_executed: int = 0
    message: Optional[str] = None


class ActionResult(BaseModel):
    """What an action handler returns from one successful attempt."""

    success: bool = True
    method: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    artifacts: List[str] = Field(default_factory=list)
    agent_result: Optional[AgentResult] = None
    error: Optional[str] = None
