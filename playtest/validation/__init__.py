"""Config validation package"""
from .validator import ConfigValidator, ValidationIssue, ValidationResult, load_test_spec, validate

__all__ = ["ConfigValidator", "ValidationIssue", "ValidationResult", "load_test_spec", "validate"]
