"""Core validation framework for topicflow projects.

Rules are pluggable and append leveled issues to a shared result. Every rule
runs on every validation; issues are aggregated so a host can show all
problems at once and decide itself whether error-level issues block export.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from ..config import FieldConfig, TopicflowConfig
from ..models.diagram import Project

logger = logging.getLogger(__name__)


class ValidationLevel(str, Enum):
    """Issue levels; errors block export."""
    ERROR = "error"
    WARNING = "warning"


class ValidationStatus(str, Enum):
    """Overall validation status."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class ElementType(str, Enum):
    """Kinds of graph elements an issue can point at."""
    STATE = "state"
    TRANSITION = "transition"


@dataclass
class ValidationIssue:
    """A single validation issue found during validation."""
    rule: str
    level: ValidationLevel
    message: str
    topic_id: str | None = None
    element_id: str | None = None
    element_type: ElementType | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __str__(self) -> str:
        location = ""
        if self.topic_id:
            location += f" in topic {self.topic_id}"
        if self.element_id:
            location += f" at {self.element_type.value if self.element_type else 'element'} {self.element_id}"
        return f"[{self.level.value.upper()}] {self.rule}: {self.message}{location}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule": self.rule,
            "level": self.level.value,
            "message": self.message,
            "topicId": self.topic_id,
            "elementId": self.element_id,
            "elementType": self.element_type.value if self.element_type else None,
        }


@dataclass
class ValidationResult:
    """Results of a validation run."""
    status: ValidationStatus = ValidationStatus.PASS
    issues: list[ValidationIssue] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        """Exit code for CI: 0 = pass/warn, 1 = fail."""
        return 0 if self.status != ValidationStatus.FAIL else 1

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == ValidationLevel.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == ValidationLevel.WARNING]

    def add_issue(self, rule: str, level: ValidationLevel, message: str,
                  topic_id: str | None = None, element_id: str | None = None,
                  element_type: ElementType | None = None) -> ValidationIssue:
        """Add a validation issue."""
        issue = ValidationIssue(rule, level, message, topic_id, element_id, element_type)
        self.issues.append(issue)

        # Update overall status (fail > warn > pass)
        if level == ValidationLevel.ERROR:
            self.status = ValidationStatus.FAIL
        elif level == ValidationLevel.WARNING and self.status == ValidationStatus.PASS:
            self.status = ValidationStatus.WARN
        return issue

    def increment_counter(self, name: str, value: int = 1) -> None:
        """Increment a counter."""
        self.counters[name] = self.counters.get(name, 0) + value

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "status": self.status.value,
            "exit_code": self.exit_code,
            "counters": self.counters,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class ValidationRule(ABC):
    """Base class for validation rules."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Rule name for identification."""
        pass

    @abstractmethod
    def validate(self, project: Project, field_config: FieldConfig, result: ValidationResult) -> None:
        """Execute validation rule.

        Args:
            project: Project snapshot to check
            field_config: Vocabulary for advisory membership checks
            result: Validation result to update with issues/counters
        """
        pass


class ValidationFramework:
    """Runs validation rules over a project snapshot."""

    def __init__(self, config: TopicflowConfig | None = None):
        self.config = config or TopicflowConfig()
        self.rules: list[ValidationRule] = []

    def add_rule(self, rule: ValidationRule) -> None:
        """Add a validation rule."""
        self.rules.append(rule)

    def validate(self, project: Project, field_config: FieldConfig | None = None) -> ValidationResult:
        """Run validation on a project.

        Args:
            project: Project snapshot
            field_config: Vocabulary override; defaults to the configured one

        Returns:
            ValidationResult with status, issues, and counters
        """
        vocabulary = field_config or self.config.vocabulary
        result = ValidationResult(status=ValidationStatus.PASS)

        logger.debug(f"Running {len(self.rules)} validation rules on {project.instrument.type or '<unnamed>'}")

        for rule in self.rules:
            logger.debug(f"Executing rule: {rule.name}")
            try:
                rule.validate(project, vocabulary, result)
            except Exception as e:
                logger.error(f"Rule {rule.name} failed with error: {e}")
                result.add_issue(
                    rule.name,
                    ValidationLevel.ERROR,
                    f"Rule execution failed: {e}"
                )

        logger.info(
            f"Validation completed with status {result.status.value}: "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    def create_default_rules(self) -> None:
        """Register the built-in structural and naming rules."""
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

        self.add_rule(InstrumentMetadataRule())
        self.add_rule(TopicIdentityRule())
        self.add_rule(StateLabelRule())
        self.add_rule(StartNodeRule())
        self.add_rule(EndPathRule())
        self.add_rule(TransitionEndpointRule())
        self.add_rule(TransitionFieldsRule())
        self.add_rule(ForkRule())
        self.add_rule(ConnectivityRule())


def validate_project(project: Project, field_config: FieldConfig | None = None) -> list[ValidationIssue]:
    """Validate a project with the default rules and return every issue."""
    framework = ValidationFramework()
    framework.create_default_rules()
    return framework.validate(project, field_config).issues


def has_blocking_errors(issues: list[ValidationIssue]) -> bool:
    """True when any issue is error level."""
    return any(issue.level == ValidationLevel.ERROR for issue in issues)
