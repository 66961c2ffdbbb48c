"""Services package"""
from .container import ServiceContainer, create_cua_capability, create_orchestrator, create_service_container
from .progress import LoggingProgressReporter, ProgressReporter, SilentProgressReporter
from .runner import run_test

__all__ = [
    "ServiceContainer",
    "create_cua_capability",
    "create_orchestrator",
    "create_service_container",
    "LoggingProgressReporter",
    "ProgressReporter",
    "SilentProgressReporter",
    "run_test",
]
