"""
StudyREPL Error Handling System
"""

from .diagnostics import (
    DiagnosticEngine,
    Diagnostic,
    ErrorSeverity,
    SourceLocation,
)
from .exceptions import (
    StudyReplError,
    UnboundNameError,
    RangeError,
    NilUnwrapError,
    ImmutableFieldError,
    SyntaxError,
    EvalTypeError,
)

__all__ = [
    'DiagnosticEngine',
    'Diagnostic',
    'ErrorSeverity',
    'SourceLocation',
    'StudyReplError',
    'UnboundNameError',
    'RangeError',
    'NilUnwrapError',
    'ImmutableFieldError',
    'SyntaxError',
    'EvalTypeError',
]
