"""
StudyREPL interactive REPL and command-line entry point
"""

from .repl import REPL, REPLEnvironment, ReplConfig, format_error, main, run_source

__all__ = ['REPL', 'REPLEnvironment', 'ReplConfig', 'format_error', 'main', 'run_source']
