"""
StudyREPL Evaluator

Evaluates expression nodes against an Environment and exposes the value
operations the REPL is built from: string interpolation, bounded random
draws, force-unwrap, nil-coalescing and optional chaining.

Evaluation never mutates bindings or records. Mutation is a statement and
belongs to the Interpreter.
"""

import logging
import math
from typing import Callable, Mapping, Optional, Tuple, Union

from ..core.ast import *
from ..core.values import (
    Value, ValueKind, NIL, some, int_value, float_value, str_value, bool_value,
    list_value, record_value, from_python, to_text, fits_int,
)
from ..core.records import RecordStore, copy_on_bind
from ..core.random_source import RandomSource, get_default_source
from ..errors.diagnostics import SourceLocation
from ..errors.exceptions import (
    UnboundNameError, RangeError, NilUnwrapError, EvalTypeError,
)
from ..parser import parse_expression, parse_template
from .environment import Environment

logger = logging.getLogger(__name__)

Bindings = Union[Environment, Mapping[str, object], None]


def _wrap_optional(value: Value) -> Value:
    """Accessor results inside an optional chain are Optional; an Optional result is not re-wrapped"""
    return value if value.is_optional else some(value)


def _checked_int(n: int) -> Value:
    """Int results outside the 64-bit range trap instead of wrapping or growing"""
    if not fits_int(n):
        raise EvalTypeError("Arithmetic overflow: result does not fit in Int", "Int")
    return int_value(n)


class Evaluator:
    """Expression evaluator"""

    def __init__(self, store: Optional[RecordStore] = None,
                 random_source: Optional[RandomSource] = None):
        self.store = store or RecordStore()
        self.random_source = random_source or get_default_source()

    # Value operations

    def interpolate(self, template: str, bindings: Bindings = None) -> Value:
        """Substitute every {expr} in the template with the text of its value"""
        node = parse_template(template)
        return self._eval_template(node, self._environment(bindings))

    def random_int(self, low, high_inclusive) -> Value:
        """Uniform Int over [low, high_inclusive]"""
        low, high = from_python(low), from_python(high_inclusive)
        for bound in (low, high):
            if bound.kind != ValueKind.INT:
                raise EvalTypeError(f"Int.random bounds must be Int, got {bound.type_name}", "Int")
        if low.data > high.data:
            raise RangeError(low.data, high.data, closed=True)

        result = self.random_source.randint(low.data, high.data)
        logger.debug("random_int(%d, %d) -> %d", low.data, high.data, result)
        return int_value(result)

    def random_float(self, low, high_exclusive) -> Value:
        """Uniform Float over [low, high_exclusive); Int bounds are promoted"""
        low, high = from_python(low), from_python(high_exclusive)
        for bound in (low, high):
            if not bound.is_number:
                raise EvalTypeError(f"Float.random bounds must be numbers, got {bound.type_name}", "Float")
        low_f, high_f = float(low.data), float(high.data)
        # 'not <' also rejects NaN bounds
        if not low_f < high_f or math.isinf(low_f) or math.isinf(high_f):
            raise RangeError(low_f, high_f, closed=False)

        result = self.random_source.uniform_half_open(low_f, high_f)
        logger.debug("random_float(%r, %r) -> %r", low_f, high_f, result)
        return float_value(result)

    def random_element(self, sequence: Value) -> Value:
        """A uniformly chosen element, or nil for an empty array"""
        self._require_list(sequence, "randomElement")
        if not sequence.data:
            return NIL
        return some(self.random_source.choice(sequence.data))

    def shuffled(self, sequence: Value) -> Value:
        """A shuffled copy of the array"""
        self._require_list(sequence, "shuffled")
        return list_value(self.random_source.shuffled(sequence.data))

    def force_unwrap(self, value: Value) -> Value:
        """Inner value of a present Optional; NilUnwrapError when absent"""
        if not value.is_optional:
            raise EvalTypeError(
                f"Cannot force unwrap value of non-optional type '{value.type_name}'", "Optional"
            )
        if value.data is None:
            raise NilUnwrapError()
        return value.data

    def coalesce(self, value: Value, default: Union[Value, Callable[[], Value]]) -> Value:
        """Inner value when present, otherwise the default.

        The default may be a zero-argument callable, evaluated only when needed.
        A non-optional value is returned unchanged.
        """
        if not value.is_optional:
            return value
        if value.data is not None:
            return value.data
        return default() if callable(default) else default

    def optional_chain(self, value: Value, accessor: Callable[[Value], Value]) -> Value:
        """nil when value is nil (accessor not called), else accessor(inner)"""
        if not value.is_optional:
            raise EvalTypeError(
                f"Cannot use optional chaining on non-optional value of type '{value.type_name}'",
                "Optional"
            )
        if value.data is None:
            return NIL
        result = accessor(value.data)
        if not isinstance(result, Value) or not result.is_optional:
            raise EvalTypeError("Optional chaining accessor must return an Optional", "Optional")
        return result

    # Expression evaluation

    def eval(self, source: str, bindings: Bindings = None) -> Value:
        """Parse and evaluate a single expression"""
        return self.evaluate(parse_expression(source), self._environment(bindings))

    def evaluate(self, node: ASTNode, env: Environment) -> Value:
        """Evaluate an expression node"""
        if isinstance(node, Literal):
            return node.value

        elif isinstance(node, StringTemplate):
            return self._eval_template(node, env)

        elif isinstance(node, Name):
            return self._eval_name(node, env)

        elif isinstance(node, ListLiteral):
            return list_value(copy_on_bind(self.evaluate(item, env)) for item in node.items)

        elif isinstance(node, BinaryOp):
            return self._eval_binary(node, env)

        elif isinstance(node, UnaryOp):
            return self._eval_unary(node, env)

        elif isinstance(node, ForceUnwrap):
            return self.force_unwrap(self.evaluate(node.operand, env))

        elif isinstance(node, Coalesce):
            left = self.evaluate(node.left, env)
            return self.coalesce(left, lambda: self.evaluate(node.right, env))

        elif isinstance(node, (FieldAccess, MethodCall)):
            value, _ = self._eval_chain(node, env)
            return value

        elif isinstance(node, Call):
            return self._eval_call(node, env)

        elif isinstance(node, RangeExpr):
            raise EvalTypeError("Ranges can only be used as the argument of Int.random(in:) or Float.random(in:)")

        else:
            raise EvalTypeError(f"Cannot evaluate {type(node).__name__} as an expression")

    def _environment(self, bindings: Bindings) -> Environment:
        if isinstance(bindings, Environment):
            return bindings
        return Environment.from_mapping(bindings)

    def _eval_template(self, node: StringTemplate, env: Environment) -> Value:
        pieces = []
        for part in node.parts:
            if isinstance(part, str):
                pieces.append(part)
            else:
                pieces.append(to_text(self.evaluate(part, env)))
        return str_value(''.join(pieces))

    def _eval_name(self, node: Name, env: Environment) -> Value:
        binding = env.lookup(node.name)
        if binding is not None:
            return binding.value
        if self.store.get_type(node.name) is not None:
            raise EvalTypeError(f"Type '{node.name}' is not a value; call it to create a record")
        location = SourceLocation(line=node.line, column=node.column, length=len(node.name)) if node.line else None
        raise UnboundNameError(node.name, location)

    def _eval_binary(self, node: BinaryOp, env: Environment) -> Value:
        left = self.evaluate(node.left, env)
        right = self.evaluate(node.right, env)

        if node.op in ('==', '!='):
            equal = self._values_equal(left, right)
            return bool_value(equal if node.op == '==' else not equal)

        if node.op == '+' and left.kind == right.kind and left.kind in (ValueKind.STR, ValueKind.LIST):
            return Value(left.kind, left.data + right.data)

        if not (left.is_number and right.is_number):
            raise EvalTypeError(
                f"Binary operator '{node.op}' cannot be applied to operands of type "
                f"'{left.type_name}' and '{right.type_name}'"
            )

        if left.kind == ValueKind.INT and right.kind == ValueKind.INT:
            return _checked_int(self._int_arithmetic(node.op, left.data, right.data))
        return float_value(self._float_arithmetic(node.op, float(left.data), float(right.data)))

    @staticmethod
    def _int_arithmetic(op: str, a: int, b: int) -> int:
        if op == '+':
            return a + b
        if op == '-':
            return a - b
        if op == '*':
            return a * b
        if b == 0:
            raise EvalTypeError("Division by zero")
        # Integer division truncates toward zero; the remainder takes the dividend's sign
        quotient = abs(a) // abs(b)
        if (a < 0) != (b < 0):
            quotient = -quotient
        if op == '/':
            return quotient
        return a - b * quotient

    @staticmethod
    def _float_arithmetic(op: str, a: float, b: float) -> float:
        if op == '+':
            return a + b
        if op == '-':
            return a - b
        if op == '*':
            return a * b
        if b == 0:
            raise EvalTypeError("Division by zero")
        if op == '/':
            return a / b
        # fmod raises on an infinite dividend; the remainder is undefined there
        if math.isinf(a):
            return math.nan
        return math.fmod(a, b)

    @staticmethod
    def _values_equal(left: Value, right: Value) -> bool:
        if left.is_number and right.is_number:
            return left.data == right.data
        return left == right

    def _eval_unary(self, node: UnaryOp, env: Environment) -> Value:
        operand = self.evaluate(node.operand, env)
        if operand.kind == ValueKind.INT:
            return _checked_int(-operand.data)
        if operand.kind == ValueKind.FLOAT:
            return float_value(-operand.data)
        raise EvalTypeError(f"Unary operator '-' cannot be applied to type '{operand.type_name}'")

    def _eval_chain(self, node: ASTNode, env: Environment) -> Tuple[Value, bool]:
        """Evaluate a member chain, returning (value, inside_optional_chain).

        Once a '?.' has been seen, every later member access in the same
        chain applies to the Optional's inner value, and a nil anywhere
        short-circuits the rest of the chain.
        """
        if isinstance(node, MethodCall) and self._is_static_random(node, env):
            return self._eval_static_random(node, env), False
        if not isinstance(node, (FieldAccess, MethodCall)):
            return self.evaluate(node, env), False

        base, chained = self._eval_chain(node.target, env)

        def accessor(inner: Value) -> Value:
            return self._member(inner, node, env)

        if node.optional or chained:
            return self.optional_chain(base, lambda inner: _wrap_optional(accessor(inner))), True
        return accessor(base), False

    def _member(self, target: Value, node: ASTNode, env: Environment) -> Value:
        if isinstance(node, FieldAccess):
            return self._field(target, node.name)
        args = [self.evaluate(arg.value, env) for arg in node.args]
        return self._method(target, node.name, args)

    def _field(self, target: Value, name: str) -> Value:
        if target.kind == ValueKind.RECORD:
            return self.store.get_field(target.data, name)
        if target.kind in (ValueKind.LIST, ValueKind.STR):
            if name == 'count':
                return int_value(len(target.data))
            if name == 'isEmpty':
                return bool_value(len(target.data) == 0)
        raise EvalTypeError(f"Value of type '{target.type_name}' has no member '{name}'")

    def _method(self, target: Value, name: str, args) -> Value:
        if name == 'append':
            raise EvalTypeError("append() changes its target and can only be used as a statement")

        if target.kind == ValueKind.RECORD and name == 'fortify':
            self._require_arity(name, args, 0)
            return str_value(self.store.fortify(target.data))
        if target.kind == ValueKind.LIST and name == 'randomElement':
            self._require_arity(name, args, 0)
            return self.random_element(target)
        if target.kind == ValueKind.LIST and name == 'shuffled':
            self._require_arity(name, args, 0)
            return self.shuffled(target)

        raise EvalTypeError(f"Value of type '{target.type_name}' has no member '{name}'")

    @staticmethod
    def _require_arity(name: str, args, count: int):
        if len(args) != count:
            raise EvalTypeError(f"{name}() takes {count} argument(s), got {len(args)}")

    @staticmethod
    def _require_list(value: Value, operation: str):
        if value.kind != ValueKind.LIST:
            raise EvalTypeError(f"{operation}() requires an Array, got '{value.type_name}'", "Array")

    def _is_static_random(self, node: MethodCall, env: Environment) -> bool:
        target = node.target
        return (isinstance(target, Name) and target.name in ('Int', 'Float') and
                target.name not in env and node.name == 'random' and not node.optional)

    def _eval_static_random(self, node: MethodCall, env: Environment) -> Value:
        """Int.random(in: a...b), Int.random(in: a..<b), Float.random(in: a..<b)"""
        type_name = node.target.name
        if len(node.args) != 1 or node.args[0].label != 'in' or not isinstance(node.args[0].value, RangeExpr):
            raise EvalTypeError(f"{type_name}.random expects a single range argument: {type_name}.random(in: a..<b)")

        range_node = node.args[0].value
        low = self.evaluate(range_node.low, env)
        high = self.evaluate(range_node.high, env)

        if type_name == 'Int':
            if range_node.closed:
                return self.random_int(low, high)
            if low.kind == ValueKind.INT and high.kind == ValueKind.INT and low.data >= high.data:
                raise RangeError(low.data, high.data, closed=False)
            return self.random_int(low, int_value(high.data - 1) if high.kind == ValueKind.INT else high)

        if range_node.closed:
            raise EvalTypeError("Float.random takes a half-open range: Float.random(in: a..<b)")
        return self.random_float(low, high)

    def _eval_call(self, node: Call, env: Environment) -> Value:
        if not isinstance(node.callee, Name):
            raise EvalTypeError("Only record types and built-in functions can be called")
        name = node.callee.name

        if name in env:
            value = env.get(name)
            raise EvalTypeError(f"Cannot call value of non-function type '{value.type_name}'")

        if name == 'some':
            if len(node.args) != 1 or node.args[0].label is not None:
                raise EvalTypeError("some() takes exactly one unlabeled argument")
            return some(copy_on_bind(self.evaluate(node.args[0].value, env)))

        record_type = self.store.get_type(name)
        if record_type is None:
            raise UnboundNameError(name)

        fields = {}
        for arg in node.args:
            if arg.label is None:
                raise EvalTypeError(f"Missing argument label in call to {name}; write 'field: value'")
            if arg.label in fields:
                raise EvalTypeError(f"Duplicate argument '{arg.label}' in call to {name}")
            fields[arg.label] = self.evaluate(arg.value, env)

        return record_value(self.store.create_record(record_type, fields))
