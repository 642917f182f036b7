"""
StudyREPL Error Diagnostics System

This module turns evaluation failures into readable reports: a short error
code, the failure kind, the message, and a hint about how to fix the input.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Severity levels for diagnostic messages"""
    ERROR = "error"
    WARNING = "warning"
    HINT = "hint"


@dataclass
class SourceLocation:
    """Location in REPL input"""
    filename: Optional[str] = None
    line: int = 0
    column: int = 0
    length: int = 1


@dataclass
class Diagnostic:
    """A diagnostic message with context"""
    severity: ErrorSeverity
    code: str  # Error code like "E001"
    kind: str  # Exception class name shown to the user
    message: str
    location: Optional[SourceLocation] = None
    suggestion: Optional[str] = None
    notes: List[str] = None

    def __post_init__(self):
        if self.notes is None:
            self.notes = []


class DiagnosticEngine:
    """Engine for collecting and formatting diagnostic messages"""

    SEVERITY_COLOR = {
        ErrorSeverity.ERROR: "\033[91m",    # Red
        ErrorSeverity.WARNING: "\033[93m",  # Yellow
        ErrorSeverity.HINT: "\033[92m"      # Green
    }
    RESET_COLOR = "\033[0m"

    def __init__(self, use_color: bool = True):
        self.use_color = use_color
        self.diagnostics: List[Diagnostic] = []

    def add_diagnostic(self, diagnostic: Diagnostic):
        """Add a diagnostic message"""
        self.diagnostics.append(diagnostic)

    def _paint(self, text: str, severity: ErrorSeverity) -> str:
        if not self.use_color:
            return text
        return f"{self.SEVERITY_COLOR[severity]}{text}{self.RESET_COLOR}"

    def format_diagnostic(self, diagnostic: Diagnostic) -> str:
        """Format a diagnostic for display.

        The first line always starts with the failure kind so that scripts
        reading stderr can match on it.
        """
        lines = []

        header = f"{diagnostic.kind}: {diagnostic.message}"
        header += " " + self._paint(f"[{diagnostic.code}]", diagnostic.severity)

        loc = diagnostic.location
        if loc and loc.line:
            where = f"{loc.filename}:" if loc.filename else ""
            header += f"\n  --> {where}{loc.line}:{loc.column}"

        lines.append(header)

        if diagnostic.suggestion:
            lines.append(f"{self._paint('help', ErrorSeverity.HINT)}: {diagnostic.suggestion}")

        for note in diagnostic.notes:
            lines.append(f"note: {note}")

        return "\n".join(lines)

    def has_errors(self) -> bool:
        """Check if there are any error diagnostics"""
        return any(d.severity == ErrorSeverity.ERROR for d in self.diagnostics)

    def format_all(self) -> str:
        """Format every collected diagnostic, separated by blank lines"""
        return "\n\n".join(self.format_diagnostic(d) for d in self.diagnostics)


# Common error generators
def unbound_name_error(name: str, location: Optional[SourceLocation] = None,
                       similar_names: List[str] = None) -> Diagnostic:
    """Generate an unknown-binding error"""
    diagnostic = Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E001",
        kind="UnboundNameError",
        message=f"Cannot find '{name}' in scope",
        location=location
    )

    if similar_names:
        diagnostic.suggestion = f"Did you mean: {', '.join(similar_names)}?"
    else:
        diagnostic.suggestion = f"Declare it first with 'let {name} = ...' or 'var {name} = ...'"

    return diagnostic


def range_error(low: Any, high: Any, closed: bool) -> Diagnostic:
    """Generate an invalid-bounds error for random draws"""
    operator = "..." if closed else "..<"
    if any(isinstance(bound, float) and math.isinf(bound) for bound in (low, high)):
        message = f"Range bounds must be finite: {low}{operator}{high}"
        suggestion = "Use finite lower and upper bounds"
    else:
        message = f"Range requires lowerBound <= upperBound: {low}{operator}{high}"
        suggestion = "Swap the bounds" if closed else "The upper bound of a half-open range must exceed the lower bound"
    return Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E002",
        kind="RangeError",
        message=message,
        suggestion=suggestion,
    )


def nil_unwrap_error(description: Optional[str] = None) -> Diagnostic:
    """Generate a force-unwrap failure"""
    message = "Unexpectedly found nil while unwrapping an Optional value"
    if description:
        message += f" ({description})"
    return Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E003",
        kind="NilUnwrapError",
        message=message,
        suggestion="Use '??' to supply a default, or '?.' to chain safely",
        notes=["Force unwrapping is a programmer error and is never recovered"]
    )


def immutable_field_error(name: str, owner: Optional[str] = None) -> Diagnostic:
    """Generate an error for a write to a 'let' field or binding"""
    if owner:
        message = f"Cannot assign to property: '{name}' is a 'let' constant of '{owner}'"
    else:
        message = f"Cannot assign to value: '{name}' is a 'let' constant"
    return Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E004",
        kind="ImmutableFieldError",
        message=message,
        suggestion=f"Change 'let' to 'var' to make '{name}' mutable"
    )


def syntax_error(message: str, location: Optional[SourceLocation] = None,
                 expected: Optional[str] = None) -> Diagnostic:
    """Generate a syntax error"""
    diagnostic = Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E005",
        kind="SyntaxError",
        message=message,
        location=location
    )

    if expected:
        diagnostic.suggestion = f"Expected: {expected}"

    return diagnostic


def type_mismatch_error(message: str, expected: Optional[str] = None) -> Diagnostic:
    """Generate an error for an operand of the wrong kind"""
    diagnostic = Diagnostic(
        severity=ErrorSeverity.ERROR,
        code="E006",
        kind="EvalTypeError",
        message=message
    )
    if expected:
        diagnostic.suggestion = f"Expected a value of type {expected}"
    return diagnostic
