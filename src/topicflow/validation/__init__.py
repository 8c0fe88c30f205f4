"""Validation layer for topicflow projects.

Checks naming, structure and reachability of every topic and reports the
problems as leveled issues. Validation never raises and never blocks
emission; callers decide what to do with error-level issues.
"""

from .framework import (
    ElementType,
    ValidationFramework,
    ValidationIssue,
    ValidationLevel,
    ValidationResult,
    ValidationRule,
    ValidationStatus,
    has_blocking_errors,
    validate_project,
)
from .rules import (
    ConnectivityRule,
    EndPathRule,
    ForkRule,
    InstrumentMetadataRule,
    StartNodeRule,
    StateLabelRule,
    TopicIdentityRule,
    TransitionEndpointRule,
    TransitionFieldsRule,
)

__all__ = [
    "ElementType",
    "ValidationFramework",
    "ValidationIssue",
    "ValidationLevel",
    "ValidationResult",
    "ValidationRule",
    "ValidationStatus",
    "has_blocking_errors",
    "validate_project",
    "InstrumentMetadataRule",
    "TopicIdentityRule",
    "StateLabelRule",
    "StartNodeRule",
    "EndPathRule",
    "TransitionEndpointRule",
    "TransitionFieldsRule",
    "ForkRule",
    "ConnectivityRule"
]
