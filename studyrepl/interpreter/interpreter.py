"""
StudyREPL Interpreter

Executes statements: bindings, reassignment, record field writes, appends,
type declarations and print. Expressions are handed to the Evaluator.

Each call to eval() is atomic. Statements run against a scratch copy of the
environment and of the type registry; the copy replaces the live state only
when every statement succeeded.
"""

import copy
import logging
import sys
from typing import Optional, TextIO

from ..core.ast import *
from ..core.values import Value, ValueKind, list_value, to_text
from ..core.records import RecordKind, RecordStore, copy_on_bind
from ..core.random_source import RandomSource
from ..errors.exceptions import EvalTypeError, ImmutableFieldError
from ..parser import parse
from .environment import Environment
from .evaluator import Evaluator

logger = logging.getLogger(__name__)


class Interpreter:
    """Statement interpreter holding the session's bindings"""

    def __init__(self, evaluator: Optional[Evaluator] = None,
                 random_source: Optional[RandomSource] = None,
                 output: Optional[TextIO] = None):
        self.evaluator = evaluator or Evaluator(RecordStore(), random_source)
        self.global_env = Environment()
        self.output = output

    @property
    def store(self) -> RecordStore:
        return self.evaluator.store

    def eval(self, source: str, filename: Optional[str] = None) -> Optional[Value]:
        """Parse and execute source; returns the value of a trailing expression, if any"""
        program = parse(source, filename)
        return self.execute(program)

    def execute(self, program: Program) -> Optional[Value]:
        """Run a program atomically against the session state"""
        scratch_env = copy.deepcopy(self.global_env)
        saved_types = dict(self.store.types)

        result = None
        try:
            for statement in program.statements:
                result = self.execute_statement(statement, scratch_env)
        except Exception:
            self.store.types = saved_types
            raise

        self.global_env = scratch_env
        return result

    def execute_statement(self, node: ASTNode, env: Environment) -> Optional[Value]:
        """Execute one statement; only expression statements produce a value"""
        if isinstance(node, Let):
            value = copy_on_bind(self.evaluator.evaluate(node.value, env))
            env.define(node.name, value, mutable=node.mutable, optional=node.optional)
            logger.debug("%s %s = %r", 'var' if node.mutable else 'let', node.name, value)
            return None

        elif isinstance(node, Assign):
            value = copy_on_bind(self.evaluator.evaluate(node.value, env))
            env.assign(node.name, value)
            return None

        elif isinstance(node, FieldAssign):
            record = self._record_target(node.target, node.name, env)
            value = self.evaluator.evaluate(node.value, env)
            self.store.set_field(record, node.name, value)
            return None

        elif isinstance(node, Append):
            self._execute_append(node, env)
            return None

        elif isinstance(node, TypeDeclaration):
            kind = RecordKind.REFERENCE if node.is_class else RecordKind.VALUE
            self.store.define_type(node.name, node.fields, kind)
            return None

        elif isinstance(node, Print):
            text = to_text(self.evaluator.evaluate(node.value, env))
            stream = self.output or sys.stdout
            stream.write(text + "\n")
            return None

        elif isinstance(node, ExpressionStatement):
            return self.evaluator.evaluate(node.expr, env)

        else:
            raise EvalTypeError(f"Unknown statement: {type(node).__name__}")

    def _record_target(self, target: ASTNode, field_name: str, env: Environment):
        self._check_root_mutable(target, env)
        record = self.evaluator.evaluate(target, env)
        if record.kind != ValueKind.RECORD:
            raise EvalTypeError(f"Value of type '{record.type_name}' has no member '{field_name}'")
        return record.data

    def _check_root_mutable(self, target: ASTNode, env: Environment):
        """A value record reached from a 'let' binding cannot be changed in place"""
        root = target
        while isinstance(root, (FieldAccess, MethodCall)):
            root = root.target
        if not isinstance(root, Name):
            return
        binding = env.lookup(root.name)
        if binding is None or binding.mutable:
            return
        value = binding.value
        if value.kind == ValueKind.RECORD and not value.data.is_reference:
            raise ImmutableFieldError(root.name)

    def _execute_append(self, node: Append, env: Environment):
        if isinstance(node.target, FieldAccess) and not node.target.optional:
            record = self._record_target(node.target.target, node.target.name, env)
            item = self.evaluator.evaluate(node.value, env)
            if node.target.name == 'citizens':
                self.store.append_citizen(record, item)
            else:
                self.store.append_to_field(record, node.target.name, item)
            return

        if isinstance(node.target, Name):
            current = env.get(node.target.name)
            if current.kind != ValueKind.LIST:
                raise EvalTypeError(
                    f"Value of type '{current.type_name}' has no member 'append'", "Array"
                )
            item = copy_on_bind(self.evaluator.evaluate(node.value, env))
            env.assign(node.target.name, list_value(current.data + (item,)))
            return

        raise EvalTypeError("append() needs a variable or a record field as its target")

    def reset(self):
        """Forget all bindings and user-declared types"""
        self.global_env = Environment()
        self.evaluator.store = RecordStore()
