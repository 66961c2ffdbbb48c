"""Reporting package"""
from .incremental_writer import IncrementalWriter
from .reporter import collect_issues, create_initial_result, determine_status, finalize_result

__all__ = [
    "IncrementalWriter",
    "collect_issues",
    "create_initial_result",
    "determine_status",
    "finalize_result",
]
