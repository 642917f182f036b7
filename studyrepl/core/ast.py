"""
StudyREPL Abstract Syntax Tree (AST) Definitions

Expression nodes are evaluated by the Evaluator; statement nodes are
executed by the Interpreter.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union
from enum import Enum, auto

from .values import Value


class NodeType(Enum):
    """Types of AST nodes"""
    LITERAL = auto()
    TEMPLATE = auto()
    NAME = auto()
    LIST = auto()
    BINARY = auto()
    UNARY = auto()
    FORCE_UNWRAP = auto()
    COALESCE = auto()
    FIELD = auto()
    METHOD_CALL = auto()
    CALL = auto()
    RANGE = auto()
    LET = auto()
    ASSIGN = auto()
    FIELD_ASSIGN = auto()
    APPEND = auto()
    TYPE_DECLARATION = auto()
    PRINT = auto()
    EXPRESSION = auto()


class ASTNode:
    """Base class for all AST nodes"""
    node_type = NodeType.LITERAL


# Expressions

@dataclass
class Literal(ASTNode):
    value: Value
    node_type = NodeType.LITERAL


@dataclass
class StringTemplate(ASTNode):
    """String literal; parts are literal text or embedded expressions"""
    parts: List[Union[str, ASTNode]] = field(default_factory=list)
    node_type = NodeType.TEMPLATE


@dataclass
class Name(ASTNode):
    name: str
    line: int = 0
    column: int = 0
    node_type = NodeType.NAME


@dataclass
class ListLiteral(ASTNode):
    items: List[ASTNode] = field(default_factory=list)
    node_type = NodeType.LIST


@dataclass
class BinaryOp(ASTNode):
    op: str
    left: ASTNode
    right: ASTNode
    node_type = NodeType.BINARY


@dataclass
class UnaryOp(ASTNode):
    op: str
    operand: ASTNode
    node_type = NodeType.UNARY


@dataclass
class ForceUnwrap(ASTNode):
    operand: ASTNode
    node_type = NodeType.FORCE_UNWRAP


@dataclass
class Coalesce(ASTNode):
    """optional ?? default"""
    left: ASTNode
    right: ASTNode
    node_type = NodeType.COALESCE


@dataclass
class FieldAccess(ASTNode):
    """target.name, or target?.name when optional is set"""
    target: ASTNode
    name: str
    optional: bool = False
    node_type = NodeType.FIELD


@dataclass
class Argument:
    """Call argument with an optional label: name: value"""
    label: Optional[str]
    value: ASTNode


@dataclass
class MethodCall(ASTNode):
    """target.name(args), or target?.name(args) when optional is set"""
    target: ASTNode
    name: str
    args: List[Argument] = field(default_factory=list)
    optional: bool = False
    node_type = NodeType.METHOD_CALL


@dataclass
class Call(ASTNode):
    """Constructor or built-in call: callee(args)"""
    callee: ASTNode
    args: List[Argument] = field(default_factory=list)
    node_type = NodeType.CALL


@dataclass
class RangeExpr(ASTNode):
    """low...high when closed, low..<high otherwise"""
    low: ASTNode
    high: ASTNode
    closed: bool
    node_type = NodeType.RANGE


# Statements

@dataclass
class Let(ASTNode):
    """let/var binding; mutable for var"""
    name: str
    value: ASTNode
    mutable: bool = False
    optional: bool = False  # declared with a T? annotation
    node_type = NodeType.LET


@dataclass
class Assign(ASTNode):
    name: str
    value: ASTNode
    node_type = NodeType.ASSIGN


@dataclass
class FieldAssign(ASTNode):
    target: ASTNode
    name: str
    value: ASTNode
    node_type = NodeType.FIELD_ASSIGN


@dataclass
class Append(ASTNode):
    """target.append(value); target is a variable or a record field"""
    target: ASTNode
    value: ASTNode
    node_type = NodeType.APPEND


@dataclass
class TypeDeclaration(ASTNode):
    """struct/class declaration; fields are (name, mutable) pairs"""
    name: str
    fields: List[Tuple[str, bool]]
    is_class: bool = False
    node_type = NodeType.TYPE_DECLARATION


@dataclass
class Print(ASTNode):
    value: ASTNode
    node_type = NodeType.PRINT


@dataclass
class ExpressionStatement(ASTNode):
    expr: ASTNode
    node_type = NodeType.EXPRESSION


@dataclass
class Program:
    statements: List[ASTNode] = field(default_factory=list)
