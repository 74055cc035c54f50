"""Diagnostic findings and the structured audit report that collects them.

Checks return findings instead of printing or counting, so the same checks can
run from the CLI, from API handlers and from tests without shared state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Severity(str, Enum):
    """How urgently a finding needs an administrator."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Finding:
    """Single diagnostic produced by a check."""

    severity: Severity
    check: str
    message: str
    subject: str | None = None


def error(check: str, message: str, subject: str | None = None) -> Finding:
    return Finding(Severity.ERROR, check, message, subject)


def warning(check: str, message: str, subject: str | None = None) -> Finding:
    return Finding(Severity.WARNING, check, message, subject)


def info(check: str, message: str, subject: str | None = None) -> Finding:
    return Finding(Severity.INFO, check, message, subject)


@dataclass
class AuditReport:
    """Findings grouped by severity, plus the checks that passed."""

    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    infos: list[Finding] = field(default_factory=list)
    passed: list[Finding] = field(default_factory=list)

    def add(self, finding: Finding) -> None:
        if finding.severity is Severity.ERROR:
            self.errors.append(finding)
        elif finding.severity is Severity.WARNING:
            self.warnings.append(finding)
        else:
            self.infos.append(finding)

    def extend(self, findings: Iterable[Finding]) -> int:
        """Add findings and return how many were problems (errors or warnings)."""
        problems = 0
        for finding in findings:
            self.add(finding)
            if finding.severity is not Severity.INFO:
                problems += 1
        return problems

    def ok(self, check: str, message: str, subject: str | None = None) -> None:
        self.passed.append(Finding(Severity.INFO, check, message, subject))

    def merge(self, other: "AuditReport") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.infos.extend(other.infos)
        self.passed.extend(other.passed)

    def for_check(self, check: str) -> list[Finding]:
        return [f for f in self.errors + self.warnings + self.infos if f.check == check]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "passed": len(self.passed),
            "warnings": len(self.warnings),
            "errors": len(self.errors),
            "infos": len(self.infos),
        }
