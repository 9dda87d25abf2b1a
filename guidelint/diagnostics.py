"""Diagnostic records produced by a pass."""

from dataclasses import dataclass, field
from typing import Any

from guidelint.hir import Span
from guidelint.lints import Lint


@dataclass(frozen=True)
class Diagnostic:
    """One ``(rule, span, message, help)`` finding."""

    lint: Lint
    span: Span
    message: str
    help: str | None = None

    @property
    def rule(self) -> str:
        return self.lint.name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "rule": self.lint.name,
            "message": self.message,
            "file": self.span.file,
            "line": self.span.line,
            "column": self.span.column,
            "severity": self.lint.severity.value,
            "group": self.lint.group.value,
        }
        if self.help:
            result["help"] = self.help
        if self.lint.cwe_id:
            result["cwe"] = self.lint.cwe_id
        return result


@dataclass
class DiagnosticSink:
    """Ordered collector; diagnostics keep their emission order."""

    diagnostics: list[Diagnostic] = field(default_factory=list)

    def emit(self, lint: Lint, span: Span, message: str, help: str | None = None) -> Diagnostic:
        diagnostic = Diagnostic(lint, span, message, help)
        self.diagnostics.append(diagnostic)
        return diagnostic

    def __len__(self) -> int:
        return len(self.diagnostics)

    def __iter__(self):
        return iter(self.diagnostics)
