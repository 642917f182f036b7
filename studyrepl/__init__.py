"""
StudyREPL: an evaluator for a teaching REPL.

Covers string interpolation, bounded random numbers, optionals and
value/reference records.
"""

__version__ = "0.1.0"
