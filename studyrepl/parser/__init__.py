"""
StudyREPL Parser
"""

from .expr_parser import Lexer, Parser, Token, parse, parse_expression, parse_template, split_template

__all__ = ['Lexer', 'Parser', 'Token', 'parse', 'parse_expression', 'parse_template', 'split_template']
