"""Agents package"""
from .base_agent import BaseAgent
from .cua_agent import ComputerUseAgent, CUACapability
from .evaluator_agent import EvaluatorAgent
from .orchestrator_agent import OrchestratorAgent

__all__ = [
    "BaseAgent",
    "ComputerUseAgent",
    "CUACapability",
    "EvaluatorAgent",
    "OrchestratorAgent",
]
