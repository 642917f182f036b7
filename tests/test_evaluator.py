"""
Tests for the Evaluator: interpolation, random draws and optional operations
"""

import math
import unittest

from studyrepl.core.random_source import RandomSource
from studyrepl.core.records import RecordStore
from studyrepl.core.values import (
    ValueKind, NIL, some, int_value, float_value, str_value, bool_value,
    list_value, record_value, from_python,
)
from studyrepl.errors.exceptions import (
    UnboundNameError, RangeError, NilUnwrapError, EvalTypeError,
    SyntaxError as StudySyntaxError,
)
from studyrepl.interpreter import Environment, Evaluator


class TestInterpolation(unittest.TestCase):
    """String templates with {expr} segments"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(1234))

    def test_arithmetic_segment(self):
        result = self.evaluator.interpolate("Hello {2+3} World", {})
        self.assertEqual(result, str_value("Hello 5 World"))

    def test_segments_use_bindings(self):
        result = self.evaluator.interpolate("{a} * {b} = {a * b}", {"a": 6, "b": 7})
        self.assertEqual(result.data, "6 * 7 = 42")

    def test_strings_and_floats(self):
        result = self.evaluator.interpolate("{name} is {x}", {"name": "Pi", "x": 3.25})
        self.assertEqual(result.data, "Pi is 3.25")

    def test_optional_segment_shows_wrapper(self):
        result = self.evaluator.interpolate("{p}", {"p": some(str_value("John"))})
        self.assertEqual(result.data, 'Optional("John")')

    def test_escaped_braces(self):
        result = self.evaluator.interpolate("{{literal}} {1}")
        self.assertEqual(result.data, "{literal} 1")

    def test_template_without_segments(self):
        self.assertEqual(self.evaluator.interpolate("plain", None).data, "plain")

    def test_unbound_name(self):
        with self.assertRaises(UnboundNameError) as ctx:
            self.evaluator.interpolate("Hello {missing + 1}", {})
        self.assertEqual(ctx.exception.name, "missing")

    def test_unterminated_segment(self):
        with self.assertRaises(StudySyntaxError):
            self.evaluator.interpolate("Hello {2 + 3", {})

    def test_environment_bindings(self):
        env = Environment()
        env.define("count", int_value(4))
        self.assertEqual(self.evaluator.interpolate("{count - 1}", env).data, "3")


class TestRandomDraws(unittest.TestCase):
    """Bounded random numbers"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(7))

    def test_random_int_covers_closed_range(self):
        seen = set()
        for _ in range(500):
            value = self.evaluator.random_int(int_value(1), int_value(3))
            self.assertEqual(value.kind, ValueKind.INT)
            self.assertTrue(1 <= value.data <= 3)
            seen.add(value.data)
        self.assertEqual(seen, {1, 2, 3})

    def test_random_int_single_point(self):
        self.assertEqual(self.evaluator.random_int(5, 5), int_value(5))

    def test_random_int_inverted_bounds(self):
        with self.assertRaises(RangeError):
            self.evaluator.random_int(int_value(3), int_value(1))

    def test_random_int_requires_ints(self):
        with self.assertRaises(EvalTypeError):
            self.evaluator.random_int(float_value(1.0), int_value(2))

    def test_random_float_half_open(self):
        for _ in range(1000):
            value = self.evaluator.random_float(float_value(1.0), float_value(3.0))
            self.assertEqual(value.kind, ValueKind.FLOAT)
            self.assertTrue(1.0 <= value.data < 3.0)

    def test_random_float_promotes_ints(self):
        value = self.evaluator.random_float(int_value(1), int_value(2))
        self.assertEqual(value.kind, ValueKind.FLOAT)

    def test_random_float_empty_range(self):
        with self.assertRaises(RangeError):
            self.evaluator.random_float(2.0, 2.0)
        with self.assertRaises(RangeError):
            self.evaluator.random_float(3.0, 1.0)
        with self.assertRaises(RangeError):
            self.evaluator.random_float(float("nan"), 1.0)

    def test_random_float_extreme_finite_bounds(self):
        # The width of these ranges overflows to inf
        test_cases = [(-1.7e308, 1.7e308), (-1.7976931348623157e308, 1.7976931348623157e308), (0.0, 1.7e308)]
        for low, high in test_cases:
            with self.subTest(low=low, high=high):
                for _ in range(200):
                    value = self.evaluator.random_float(low, high)
                    self.assertTrue(low <= value.data < high)

    def test_random_float_tiny_range(self):
        low = 1.0
        high = 1.0000000000000002  # next float after 1.0
        for _ in range(200):
            self.assertEqual(self.evaluator.random_float(low, high).data, low)

    def test_random_float_infinite_bounds(self):
        inf = float("inf")
        for low, high in ((0.0, inf), (-inf, 0.0), (-inf, inf)):
            with self.subTest(low=low, high=high):
                with self.assertRaises(RangeError) as ctx:
                    self.evaluator.random_float(low, high)
                self.assertIn("finite", str(ctx.exception))

    def test_source_usable_after_extreme_draw(self):
        self.evaluator.random_float(-1.7e308, 1.7e308)
        value = self.evaluator.random_int(1, 3)
        self.assertIn(value.data, (1, 2, 3))

    def test_seeded_sources_repeat(self):
        first = Evaluator(random_source=RandomSource(99))
        second = Evaluator(random_source=RandomSource(99))
        draws_a = [first.random_int(0, 1000).data for _ in range(20)]
        draws_b = [second.random_int(0, 1000).data for _ in range(20)]
        self.assertEqual(draws_a, draws_b)

    def test_random_element(self):
        items = from_python([10, 20, 30])
        element = self.evaluator.random_element(items)
        self.assertTrue(element.is_present)
        self.assertIn(element.data, items.data)
        self.assertEqual(self.evaluator.random_element(list_value([])), NIL)

    def test_shuffled_is_a_permutation(self):
        items = from_python(list(range(10)))
        result = self.evaluator.shuffled(items)
        self.assertEqual(sorted(v.data for v in result.data), list(range(10)))
        self.assertEqual([v.data for v in items.data], list(range(10)))

    def test_random_element_requires_array(self):
        with self.assertRaises(EvalTypeError):
            self.evaluator.random_element(int_value(3))


class TestOptionalOperations(unittest.TestCase):
    """force_unwrap, coalesce and optional_chain"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(0))

    def test_force_unwrap_present(self):
        self.assertEqual(self.evaluator.force_unwrap(some(str_value("John Smith"))),
                         str_value("John Smith"))

    def test_force_unwrap_absent(self):
        with self.assertRaises(NilUnwrapError):
            self.evaluator.force_unwrap(NIL)

    def test_force_unwrap_non_optional(self):
        with self.assertRaises(EvalTypeError):
            self.evaluator.force_unwrap(int_value(1))

    def test_force_unwrap_removes_one_level(self):
        nested = some(some(int_value(1)))
        self.assertEqual(self.evaluator.force_unwrap(nested), some(int_value(1)))

    def test_coalesce(self):
        self.assertEqual(self.evaluator.coalesce(NIL, int_value(0)), int_value(0))
        self.assertEqual(self.evaluator.coalesce(some(int_value(4)), int_value(0)), int_value(4))

    def test_coalesce_lazy_default(self):
        calls = []

        def default():
            calls.append(1)
            return int_value(0)

        self.assertEqual(self.evaluator.coalesce(some(int_value(4)), default), int_value(4))
        self.assertEqual(calls, [])
        self.assertEqual(self.evaluator.coalesce(NIL, default), int_value(0))
        self.assertEqual(calls, [1])

    def test_coalesce_non_optional_passes_through(self):
        self.assertEqual(self.evaluator.coalesce(int_value(3), int_value(0)), int_value(3))

    def test_optional_chain_absent_skips_accessor(self):
        calls = []

        def accessor(inner):
            calls.append(inner)
            return some(inner)

        self.assertEqual(self.evaluator.optional_chain(NIL, accessor), NIL)
        self.assertEqual(calls, [])

    def test_optional_chain_present(self):
        def double(inner):
            return some(int_value(inner.data * 2))

        self.assertEqual(self.evaluator.optional_chain(some(int_value(21)), double),
                         some(int_value(42)))

    def test_optional_chain_accessor_may_return_nil(self):
        self.assertEqual(self.evaluator.optional_chain(some(int_value(1)), lambda _: NIL), NIL)

    def test_optional_chain_checks_types(self):
        with self.assertRaises(EvalTypeError):
            self.evaluator.optional_chain(int_value(1), lambda v: some(v))
        with self.assertRaises(EvalTypeError):
            self.evaluator.optional_chain(some(int_value(1)), lambda v: v)


class TestExpressions(unittest.TestCase):
    """Evaluator.eval over the expression grammar"""

    def setUp(self):
        self.store = RecordStore()
        self.evaluator = Evaluator(self.store, RandomSource(42))

    def eval(self, source, **bindings):
        return self.evaluator.eval(source, bindings)

    def test_arithmetic(self):
        test_cases = [
            ("2 + 3 * 4", int_value(14)),
            ("(2 + 3) * 4", int_value(20)),
            ("7 / 2", int_value(3)),
            ("-7 / 2", int_value(-3)),
            ("-7 % 3", int_value(-1)),
            ("7 % -3", int_value(1)),
            ("7.0 / 2", float_value(3.5)),
            ("1.5 + 1", float_value(2.5)),
            ("--4", int_value(4)),
        ]
        for source, expected in test_cases:
            with self.subTest(source=source):
                self.assertEqual(self.eval(source), expected)

    def test_division_by_zero(self):
        with self.assertRaises(EvalTypeError):
            self.eval("1 / 0")
        with self.assertRaises(EvalTypeError):
            self.eval("1.0 % 0")

    def test_int_overflow_traps(self):
        test_cases = [
            "9223372036854775807 + 1",
            "-9223372036854775807 - 2",
            "9223372036854775807 * 2",
            "(-9223372036854775807 - 1) / -1",
            "-(-9223372036854775807 - 1)",
        ]
        for source in test_cases:
            with self.subTest(source=source):
                with self.assertRaises(EvalTypeError) as ctx:
                    self.eval(source)
                self.assertIn("overflow", str(ctx.exception))

    def test_int_range_edges(self):
        self.assertEqual(self.eval("9223372036854775806 + 1"), int_value(2 ** 63 - 1))
        self.assertEqual(self.eval("-9223372036854775807 - 1"), int_value(-2 ** 63))
        self.assertEqual(self.eval("9223372036854775807 * 1.0"), float_value(9.223372036854776e18))

    def test_float_remainder_of_infinity(self):
        huge = "1" + "0" * 400 + ".0"
        result = self.eval(f"{huge} % 2.0")
        self.assertEqual(result.kind, ValueKind.FLOAT)
        self.assertTrue(math.isnan(result.data))

    def test_concatenation(self):
        self.assertEqual(self.eval('"a" + "b"'), str_value("ab"))
        self.assertEqual(self.eval("[1] + [2]"), from_python([1, 2]))

    def test_mismatched_operands(self):
        with self.assertRaises(EvalTypeError):
            self.eval('"x" - 1')
        with self.assertRaises(EvalTypeError):
            self.eval('-"x"')

    def test_equality(self):
        self.assertEqual(self.eval("1 == 1.0"), bool_value(True))
        self.assertEqual(self.eval('"a" != "b"'), bool_value(True))
        self.assertEqual(self.eval("p != nil", p=NIL), bool_value(False))
        self.assertEqual(self.eval("p != nil", p=some(int_value(1))), bool_value(True))

    def test_string_literal_interpolates(self):
        self.assertEqual(self.eval('"Hello {2+3} World"'), str_value("Hello 5 World"))

    def test_nil_coalescing(self):
        self.assertEqual(self.eval("nil ?? 5"), int_value(5))
        self.assertEqual(self.eval("some(4) ?? 5"), int_value(4))
        self.assertEqual(self.eval("nil ?? nil ?? 3"), int_value(3))

    def test_coalesce_does_not_evaluate_unused_default(self):
        result = self.eval("x ?? y!", x=some(int_value(1)), y=NIL)
        self.assertEqual(result, int_value(1))

    def test_force_unwrap(self):
        self.assertEqual(self.eval("some(2)!"), int_value(2))
        with self.assertRaises(NilUnwrapError):
            self.eval("nil!")

    def test_int_random(self):
        for _ in range(50):
            value = self.eval("Int.random(in: 1...3)")
            self.assertIn(value.data, (1, 2, 3))
            value = self.eval("Int.random(in: 1..<3)")
            self.assertIn(value.data, (1, 2))

    def test_int_random_bad_ranges(self):
        with self.assertRaises(RangeError):
            self.eval("Int.random(in: 3...1)")
        with self.assertRaises(RangeError):
            self.eval("Int.random(in: 1..<1)")
        with self.assertRaises(EvalTypeError):
            self.eval("Int.random(1, 3)")

    def test_float_random(self):
        value = self.eval("Float.random(in: 1..<3)")
        self.assertEqual(value.kind, ValueKind.FLOAT)
        self.assertTrue(1.0 <= value.data < 3.0)
        with self.assertRaises(EvalTypeError):
            self.eval("Float.random(in: 1...3)")

    def test_range_outside_random(self):
        with self.assertRaises(EvalTypeError):
            self.eval("some(1...3)")

    def test_array_members(self):
        self.assertEqual(self.eval("[1, 2, 3].count"), int_value(3))
        self.assertEqual(self.eval("[].isEmpty"), bool_value(True))
        self.assertEqual(self.eval('"abc".count'), int_value(3))
        element = self.eval("[1, 2, 3].randomElement()!")
        self.assertIn(element.data, (1, 2, 3))
        self.assertEqual(self.eval("[].randomElement()"), NIL)
        shuffled = self.eval("[1, 2, 3].shuffled()")
        self.assertEqual(sorted(v.data for v in shuffled.data), [1, 2, 3])

    def test_append_is_not_an_expression(self):
        with self.assertRaises(EvalTypeError):
            self.eval("[1].append(2) ?? 1")

    def test_record_construction_and_fields(self):
        town = self.eval('Town(name: "Munich", citizens: ["Tom Hanks"])')
        self.assertEqual(town.kind, ValueKind.RECORD)
        self.assertEqual(self.eval("t.name", t=town), str_value("Munich"))
        self.assertEqual(self.eval("t.citizens.count", t=town), int_value(1))
        self.assertEqual(self.eval("t.fortify()", t=town), str_value("Defenses increased!"))

    def test_record_construction_errors(self):
        with self.assertRaises(EvalTypeError):
            self.eval('Town("Munich", [])')
        with self.assertRaises(EvalTypeError):
            self.eval('Town(name: "A", name: "B", citizens: [])')
        with self.assertRaises(UnboundNameError):
            self.eval('Castle(name: "A")')
        with self.assertRaises(EvalTypeError):
            self.eval("Town")

    def test_optional_chaining(self):
        town = record_value(self.store.create("Munich", ["Tom Hanks"]))
        present = some(town)

        self.assertEqual(self.eval("t?.name", t=present), some(str_value("Munich")))
        self.assertEqual(self.eval("t?.citizens.count", t=present), some(int_value(1)))
        self.assertEqual(self.eval("t?.fortify()", t=present),
                         some(str_value("Defenses increased!")))
        self.assertEqual(self.eval("t?.citizens.count", t=NIL), NIL)

    def test_optional_chain_short_circuits(self):
        # Neither the member lookups nor the method arguments run on nil
        self.assertEqual(self.eval("t?.nothing.whatever", t=NIL), NIL)
        self.assertEqual(self.eval("t?.fortify(undefinedName)", t=NIL), NIL)

    def test_optional_chain_flattens_optional_members(self):
        self.assertEqual(self.eval("xs?.randomElement()", xs=some(list_value([]))), NIL)

    def test_optional_chaining_requires_optional(self):
        with self.assertRaises(EvalTypeError):
            self.eval("5?.count")

    def test_unbound_name(self):
        with self.assertRaises(UnboundNameError):
            self.eval("undefinedName + 1")


if __name__ == '__main__':
    unittest.main()
