"""
StudyREPL Exception Classes

Every failure raised while parsing or evaluating carries a Diagnostic so the
REPL can report the failure kind together with a hint.
"""

from typing import Optional, Any
from .diagnostics import (
    Diagnostic,
    SourceLocation,
    unbound_name_error,
    range_error,
    nil_unwrap_error,
    immutable_field_error,
    syntax_error,
    type_mismatch_error,
)


class StudyReplError(Exception):
    """Base exception for StudyREPL errors"""

    def __init__(self, message: str, diagnostic: Optional[Diagnostic] = None):
        super().__init__(message)
        self.diagnostic = diagnostic

    @property
    def kind(self) -> str:
        return type(self).__name__


class UnboundNameError(StudyReplError):
    """A name was referenced before it was bound"""

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        diagnostic = unbound_name_error(name, location)
        super().__init__(diagnostic.message, diagnostic)
        self.name = name


class RangeError(StudyReplError):
    """Bounds of a random draw are empty or inverted"""

    def __init__(self, low: Any, high: Any, closed: bool = True):
        diagnostic = range_error(low, high, closed)
        super().__init__(diagnostic.message, diagnostic)
        self.low = low
        self.high = high
        self.closed = closed


class NilUnwrapError(StudyReplError):
    """Force unwrap of an absent Optional"""

    def __init__(self, description: Optional[str] = None):
        diagnostic = nil_unwrap_error(description)
        super().__init__(diagnostic.message, diagnostic)


class ImmutableFieldError(StudyReplError):
    """Write to a field or binding declared with 'let'"""

    def __init__(self, name: str, owner: Optional[str] = None):
        diagnostic = immutable_field_error(name, owner)
        super().__init__(diagnostic.message, diagnostic)
        self.owner = owner
        self.name = name


class SyntaxError(StudyReplError):
    """Syntax error in REPL input"""

    def __init__(self, message: str, location: Optional[SourceLocation] = None,
                 expected: Optional[str] = None):
        super().__init__(message, syntax_error(message, location, expected))
        self.location = location


class EvalTypeError(StudyReplError):
    """Operand of the wrong kind, or an operation with no defined result"""

    def __init__(self, message: str, expected: Optional[str] = None):
        super().__init__(message, type_mismatch_error(message, expected))
        self.expected = expected
