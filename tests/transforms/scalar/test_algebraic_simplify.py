"""
AlgebraicSimplificationPass Tests
=================================

Tests for the multiply-by-zero, multiply-by-one and add-zero rules and for the
sweep that dispatches them.
"""

import unittest
import numpy as np

from graph_rewriter.core import (
    ADD,
    MULTIPLY,
    Function,
    RuleRegistry,
    ShapeTypeViolation,
    check_replacement,
    replace_node,
)
from graph_rewriter.transforms.scalar.algebraic_simplify import (
    AlgebraicSimplificationPass,
    canonicalize_constant,
    create_binary_matcher,
    default_rule_registry,
    simplify_add,
    simplify_multiply,
)
from graph_rewriter.utils.graph_utils import (
    create_add,
    create_broadcast,
    create_const_node,
    create_multiply,
    create_node,
    create_parameter,
)


def _bcast_const(value, shape=(4,), dtype=np.float32):
    return create_broadcast(create_const_node(value, dtype, shape=()), shape)


class AlgebraicSimplificationPassTest(unittest.TestCase):
    def setUp(self):
        self.x = create_parameter((4,), name="x")

    def _run(self, function, rules=None):
        return AlgebraicSimplificationPass(rules).run_on_function(function)

    def _output(self, function, index=0):
        return function.results[index].operands[0]

    def test_multiply_by_zero(self):
        zero = _bcast_const(0.0)
        mul = create_multiply(self.x, zero, name="mul")
        f = Function([mul], [self.x])

        self.assertTrue(self._run(f))

        out = self._output(f)
        self.assertEqual(out.op_type, "Constant")
        self.assertEqual(out.shape, (4,))
        self.assertEqual(out.dtype, self.x.dtype)
        self.assertTrue(np.all(out.value == 0))
        self.assertTrue(mul.released)
        # The zero-rank scalar is never substituted for a shaped result
        self.assertIsNot(out, zero.operands[0])

    def test_multiply_by_zero_keeps_dtype(self):
        x = create_parameter((2, 3), dtype=np.float64, name="x64")
        mul = create_multiply(x, _bcast_const(0.0, (2, 3), np.float64))
        f = Function([mul], [x])

        self.assertTrue(self._run(f))
        out = self._output(f)
        self.assertEqual(out.dtype, np.dtype(np.float64))
        self.assertEqual(out.shape, (2, 3))

    def test_multiply_by_zero_reuses_matching_constant(self):
        zeros = create_const_node(0.0, shape=(4,), name="zeros")
        f = Function([create_multiply(self.x, zeros)], [self.x])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), zeros)

    def test_multiply_scalar_by_zero(self):
        x = create_parameter((), name="s")
        zero = create_const_node(0.0, name="zero")
        f = Function([create_multiply(x, zero)], [x])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), zero)

    def test_multiply_by_one(self):
        mul = create_multiply(self.x, _bcast_const(1.0), name="mul")
        f = Function([mul], [self.x])
        node_ids_before = {n.id for n in f.get_ordered_ops()}

        self.assertTrue(self._run(f))

        self.assertIs(self._output(f), self.x)
        self.assertEqual(self.x.consumers, [f.results[0]])
        # No new node was created
        self.assertTrue({n.id for n in f.get_ordered_ops()} <= node_ids_before)
        self.assertEqual(f.get_ordered_ops(), [self.x, f.results[0]])

    def test_multiply_by_full_one_constant(self):
        ones = create_const_node(1.0, shape=(4,))
        f = Function([create_multiply(self.x, ones)], [self.x])
        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), self.x)

    def test_add_zero(self):
        add = create_add(self.x, _bcast_const(0.0), name="add")
        f = Function([add], [self.x])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), self.x)
        self.assertTrue(add.released)

    def test_integer_add_zero(self):
        x = create_parameter((3,), dtype=np.int32, name="xi")
        f = Function([create_add(x, _bcast_const(0, (3,), np.int32))], [x])
        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), x)

    def test_no_spurious_firing(self):
        mul = create_multiply(self.x, _bcast_const(2.0), name="mul")
        f = Function([mul], [self.x])

        self.assertFalse(self._run(f))
        self.assertIs(self._output(f), mul)
        self.assertFalse(mul.released)

    def test_add_one_not_simplified(self):
        add = create_add(self.x, _bcast_const(1.0))
        f = Function([add], [self.x])
        self.assertFalse(self._run(f))
        self.assertIs(self._output(f), add)

    def test_non_uniform_constant_not_simplified(self):
        mixed = create_const_node([0.0, 1.0, 0.0, 1.0], shape=(4,))
        mul = create_multiply(self.x, mixed)
        f = Function([mul], [self.x])
        self.assertFalse(self._run(f))
        self.assertIs(self._output(f), mul)

    def test_constant_on_left_not_matched(self):
        mul = create_multiply(_bcast_const(0.0), self.x)
        f = Function([mul], [self.x])
        self.assertFalse(self._run(f))
        self.assertIs(self._output(f), mul)

    def test_non_constant_operand_not_matched(self):
        y = create_parameter((4,), name="y")
        mul = create_multiply(self.x, y)
        f = Function([mul], [self.x, y])
        self.assertFalse(self._run(f))

    def test_fixed_point_signaling(self):
        inner = create_multiply(self.x, _bcast_const(1.0), name="inner")
        outer = create_add(inner, _bcast_const(0.0), name="outer")
        f = Function([outer], [self.x])

        self.assertTrue(self._run(f))
        self.assertFalse(self._run(f))
        self.assertFalse(self._run(f))

    def test_already_simplified_graph(self):
        f = Function([create_node("Negative", [self.x])], [self.x])
        self.assertFalse(self._run(f))

    def test_chained_identities_in_one_sweep(self):
        inner = create_multiply(self.x, _bcast_const(1.0), name="inner")
        outer = create_add(inner, _bcast_const(0.0), name="outer")
        f = Function([outer], [self.x])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f), self.x)
        self.assertEqual(f.get_ordered_ops(), [self.x, f.results[0]])

    def test_every_eligible_node_rewritten(self):
        y = create_parameter((4,), name="y")
        r1 = create_add(self.x, _bcast_const(0.0), name="r1")
        r2 = create_multiply(y, _bcast_const(1.0), name="r2")
        f = Function([r1, r2], [self.x, y])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f, 0), self.x)
        self.assertIs(self._output(f, 1), y)

    def test_shared_constant(self):
        zero = _bcast_const(0.0)
        y = create_parameter((4,), name="y")
        a1 = create_add(self.x, zero, name="a1")
        a2 = create_add(y, zero, name="a2")
        f = Function([a1, a2], [self.x, y])

        self.assertTrue(self._run(f))
        self.assertIs(self._output(f, 0), self.x)
        self.assertIs(self._output(f, 1), y)
        self.assertTrue(zero.released)
        f.validate()

    def test_shared_multiply_consumers_rewired(self):
        mul = create_multiply(self.x, _bcast_const(0.0), name="mul")
        neg = create_node("Negative", [mul], name="neg")
        f = Function([neg, mul], [self.x])

        self.assertTrue(self._run(f))
        zero = self._output(f, 1)
        self.assertEqual(zero.op_type, "Constant")
        self.assertIs(neg.operands[0], zero)
        self.assertEqual(set(zero.consumers), {neg, f.results[1]})

    def test_signature_preserved(self):
        y = create_parameter((2,), name="y")
        r1 = create_multiply(self.x, _bcast_const(0.0))
        r2 = create_add(y, _bcast_const(0.0, (2,)))
        f = Function([r1, r2], [self.x, y])
        signature = f.signature()

        self._run(f)

        self.assertEqual(f.signature(), signature)
        self.assertEqual(f.parameters, [self.x, y])
        f.validate()


class AddRuleTest(unittest.TestCase):
    """simplify_add matches genuine Add nodes and nothing else."""

    def setUp(self):
        self.x = create_parameter((4,), name="x")

    def test_fires_on_add(self):
        add = create_add(self.x, _bcast_const(0.0))
        Function([add], [self.x])
        self.assertTrue(simplify_add(add))

    def test_ignores_multiply(self):
        mul = create_multiply(self.x, _bcast_const(0.0))
        f = Function([mul], [self.x])
        self.assertFalse(simplify_add(mul))
        self.assertIs(f.results[0].operands[0], mul)

    def test_multiply_rule_ignores_add(self):
        add = create_add(self.x, _bcast_const(0.0))
        Function([add], [self.x])
        self.assertFalse(simplify_multiply(add))


class RuleRegistryTest(unittest.TestCase):
    def setUp(self):
        self.x = create_parameter((4,), name="x")

    def test_default_registry(self):
        rules = default_rule_registry()
        self.assertEqual(set(rules), {ADD, MULTIPLY})
        self.assertIs(rules.get(ADD), simplify_add)
        self.assertIs(rules.get(MULTIPLY), simplify_multiply)
        self.assertIsNot(default_rule_registry(), rules)

    def test_unregistered_kind_is_skipped(self):
        mul = create_multiply(self.x, _bcast_const(0.0))
        f = Function([mul], [self.x])
        rules = RuleRegistry({ADD: simplify_add})

        self.assertFalse(AlgebraicSimplificationPass(rules).run_on_function(f))
        self.assertIs(f.results[0].operands[0], mul)

    def test_empty_registry(self):
        f = Function([create_add(self.x, _bcast_const(0.0))], [self.x])
        self.assertFalse(AlgebraicSimplificationPass(RuleRegistry()).run_on_function(f))

    def test_register_and_unregister(self):
        rules = default_rule_registry().copy()
        rules.unregister(ADD)
        self.assertNotIn(ADD, rules)
        self.assertEqual(len(rules), 1)

        @rules.register("Negative")
        def simplify_negative(node):
            return False

        self.assertIs(rules.get("Negative"), simplify_negative)
        self.assertIn("Negative", rules)

    def test_mock_rule_sees_each_candidate_once(self):
        seen = []

        def record(node):
            seen.append(node)
            return False

        neg = create_node("Negative", [self.x], name="neg")
        add = create_add(neg, neg, name="add")
        f = Function([add], [self.x])
        rules = RuleRegistry(
            {"Negative": record, ADD: record, "Parameter": record, "Result": record}
        )

        self.assertFalse(AlgebraicSimplificationPass(rules).run_on_function(f))
        self.assertEqual(seen, [neg, add])

    def test_released_nodes_are_not_visited(self):
        a = create_node("Negative", [self.x], name="a")
        b = create_node("Abs", [self.x], name="b")
        f = Function([create_add(a, b)], [self.x])
        visited_abs = []

        def drop_abs(node):
            replace_node(b, self.x)
            return True

        def record_abs(node):
            visited_abs.append(node)
            return False

        rules = RuleRegistry({"Negative": drop_abs, "Abs": record_abs})

        # `a` sorts before `b`, and rewriting `a` drops `b`
        self.assertTrue(AlgebraicSimplificationPass(rules).run_on_function(f))
        self.assertTrue(b.released)
        self.assertEqual(visited_abs, [])

    def test_shape_type_violation_propagates(self):
        def broken_rule(node):
            bad = create_const_node(0.0, shape=(2,))
            check_replacement(node, bad)
            replace_node(node, bad)
            return True

        f = Function([create_add(self.x, self.x)], [self.x])
        with self.assertRaises(ShapeTypeViolation):
            AlgebraicSimplificationPass(RuleRegistry({ADD: broken_rule})).run_on_function(f)


class CanonicalizeConstantTest(unittest.TestCase):
    def test_scalar_returned_as_is(self):
        c = create_const_node(5.0)
        self.assertIs(canonicalize_constant(c, 0), c)

    def test_uniform_constant_synthesizes_scalar(self):
        c = create_const_node(0.0, shape=(3, 2))
        can = canonicalize_constant(c, 0)
        self.assertIsNot(can, c)
        self.assertEqual(can.shape, ())
        self.assertEqual(can.dtype, c.dtype)
        self.assertEqual(can.value.item(), 0.0)
        # Comparison-only node, never wired into the graph
        self.assertEqual(can.consumer_inputs, [])

    def test_non_uniform_constant(self):
        c = create_const_node([1.0, 2.0], shape=(2,))
        self.assertIsNone(canonicalize_constant(c, 1))

    def test_binary_matcher_binds_constant_through_broadcast(self):
        x = create_parameter((4,))
        bcast = _bcast_const(0.0)
        matcher, label, const_label = create_binary_matcher(ADD)
        self.assertTrue(matcher.match(create_add(x, bcast)))
        pattern_map = matcher.get_pattern_map()
        self.assertIs(pattern_map[label], x)
        self.assertIs(pattern_map[const_label], bcast.operands[0])


if __name__ == "__main__":
    unittest.main()
