"""
Property-based tests for StudyREPL using Hypothesis

Invariants of the value operations that should hold for all inputs:
random draws stay in bounds, unwrapping undoes wrapping, and value
records never share state with their copies.
"""
import string
import unittest

from hypothesis import given, strategies as st, assume, settings
from hypothesis.strategies import composite

from studyrepl.core.random_source import RandomSource
from studyrepl.core.records import RecordStore, RecordKind
from studyrepl.core.values import INT_MIN, INT_MAX, NIL, some, from_python, to_python, describe
from studyrepl.errors.exceptions import RangeError, NilUnwrapError, EvalTypeError
from studyrepl.interpreter import Evaluator


names = st.text(alphabet=string.ascii_letters + " ", min_size=1, max_size=12)
ints = st.integers(min_value=INT_MIN, max_value=INT_MAX)
# Sums of two of these always fit in Int
half_ints = st.integers(min_value=INT_MIN // 2, max_value=INT_MAX // 2)


@composite
def int_bounds(draw):
    """Generate (low, high) with low <= high"""
    low = draw(st.integers(min_value=-10_000, max_value=10_000))
    span = draw(st.integers(min_value=0, max_value=1_000))
    return low, low + span


@composite
def plain_values(draw):
    """Generate Python values convertible to StudyREPL values"""
    return draw(st.one_of(
        st.integers(min_value=-1000, max_value=1000),
        st.floats(min_value=-1000, max_value=1000, allow_nan=False, allow_infinity=False),
        st.text(alphabet=string.printable, max_size=20),
        st.booleans(),
        st.lists(st.integers(min_value=-100, max_value=100), max_size=5),
    ))


class TestRandomProperties(unittest.TestCase):
    """Draws stay inside their range"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(0))

    @given(int_bounds(), st.integers())
    def test_random_int_in_closed_range(self, bounds, seed):
        low, high = bounds
        self.evaluator.random_source.seed(seed)
        value = self.evaluator.random_int(low, high)
        self.assertTrue(low <= value.data <= high)

    @given(ints, ints)
    def test_random_int_rejects_inverted_bounds(self, low, high):
        assume(low > high)
        with self.assertRaises(RangeError):
            self.evaluator.random_int(low, high)

    @given(st.floats(min_value=-1e6, max_value=1e6),
           st.floats(min_value=-1e6, max_value=1e6))
    def test_random_float_in_half_open_range(self, low, high):
        assume(low < high)
        value = self.evaluator.random_float(low, high)
        self.assertTrue(low <= value.data < high)

    @given(st.floats(allow_nan=False, allow_infinity=False),
           st.floats(allow_nan=False, allow_infinity=False))
    def test_random_float_any_finite_range(self, low, high):
        assume(low < high)
        value = self.evaluator.random_float(low, high)
        self.assertTrue(low <= value.data < high)

    @given(st.floats(allow_nan=False), st.floats(allow_nan=False))
    def test_random_float_rejects_empty_range(self, low, high):
        assume(low >= high)
        with self.assertRaises(RangeError):
            self.evaluator.random_float(low, high)

    @given(st.lists(ints, max_size=20), st.integers())
    def test_shuffled_is_a_permutation(self, items, seed):
        self.evaluator.random_source.seed(seed)
        result = self.evaluator.shuffled(from_python(items))
        self.assertEqual(sorted(to_python(result)), sorted(items))


class TestIntArithmeticProperties(unittest.TestCase):
    """Int results either fit in 64 bits or trap"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(0))

    @given(ints, ints,
           st.sampled_from(['+', '-', '*']))
    def test_result_fits_or_overflows(self, a, b, op):
        expected = {'+': a + b, '-': a - b, '*': a * b}[op]
        bindings = {"a": a, "b": b}
        if INT_MIN <= expected <= INT_MAX:
            self.assertEqual(self.evaluator.eval(f"a {op} b", bindings).data, expected)
        else:
            with self.assertRaises(EvalTypeError):
                self.evaluator.eval(f"a {op} b", bindings)


class TestOptionalProperties(unittest.TestCase):
    """force_unwrap, coalesce and optional_chain laws"""

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(0))

    @given(plain_values())
    def test_unwrap_undoes_some(self, raw):
        value = from_python(raw)
        self.assertEqual(self.evaluator.force_unwrap(some(value)), value)

    @given(plain_values(), plain_values())
    def test_coalesce(self, raw, default_raw):
        value, default = from_python(raw), from_python(default_raw)
        self.assertEqual(self.evaluator.coalesce(some(value), default), value)
        self.assertEqual(self.evaluator.coalesce(NIL, default), default)

    @given(plain_values())
    def test_chain_on_nil_is_nil(self, raw):
        self.assertEqual(self.evaluator.optional_chain(NIL, lambda v: some(from_python(raw))), NIL)

    def test_nil_unwrap_always_fails(self):
        with self.assertRaises(NilUnwrapError):
            self.evaluator.force_unwrap(NIL)


class TestInterpolationProperties(unittest.TestCase):

    def setUp(self):
        self.evaluator = Evaluator(random_source=RandomSource(0))

    @given(st.text(alphabet=string.ascii_letters + string.digits + " .,!", max_size=30))
    def test_text_without_braces_is_unchanged(self, text):
        self.assertEqual(self.evaluator.interpolate(text).data, text)

    @given(half_ints, half_ints)
    def test_arithmetic_segment(self, a, b):
        result = self.evaluator.interpolate("{a} + {b} = {a + b}", {"a": a, "b": b})
        self.assertEqual(result.data, f"{a} + {b} = {a + b}")

    @given(plain_values())
    def test_segment_text_matches_print_text(self, raw):
        value = from_python(raw)
        rendered = self.evaluator.interpolate("{v}", {"v": value}).data
        expected = raw if isinstance(raw, str) else describe(value)
        self.assertEqual(rendered, expected)


class TestRecordProperties(unittest.TestCase):

    @given(names, st.lists(names, max_size=5), names)
    def test_value_copy_never_sees_appends(self, town_name, citizens, newcomer):
        store = RecordStore()
        town = store.create(town_name, citizens)
        copy = store.bind(town)
        store.append_citizen(town, newcomer)

        self.assertEqual(to_python(store.get_field(copy, "citizens")), citizens)
        self.assertEqual(to_python(store.get_field(town, "citizens")), citizens + [newcomer])

    @given(names, st.lists(names, max_size=5), names)
    def test_reference_alias_always_sees_appends(self, town_name, citizens, newcomer):
        store = RecordStore()
        town = store.create(town_name, citizens, RecordKind.REFERENCE)
        alias = store.bind(town)
        store.append_citizen(town, newcomer)

        self.assertEqual(to_python(store.get_field(alias, "citizens")), citizens + [newcomer])


# Configure hypothesis settings for CI
settings.register_profile("ci", max_examples=50, deadline=5000)
settings.register_profile("dev", max_examples=10, deadline=2000)
settings.register_profile("debug", max_examples=5, deadline=None)


if __name__ == '__main__':
    # Use CI profile by default
    settings.load_profile("ci")
    unittest.main()
