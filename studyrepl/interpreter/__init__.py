"""
StudyREPL Interpreter
"""

from .environment import Environment, Binding
from .evaluator import Evaluator
from .interpreter import Interpreter

__all__ = ['Environment', 'Binding', 'Evaluator', 'Interpreter']
