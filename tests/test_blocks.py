"""
Tests for computation graph blocks.

Tests cover:
- Parameter nodes
- Forward values of operation blocks
- Per-pass memoization
- Shape errors and uninitialized access
- Gradients against finite differences
- Gradient accumulation on shared parameters
- Dropout masks
"""

import numpy as np
import pytest

from sentiment_blocks.blocks import (
    Block,
    Dot,
    Dropout,
    MatrixParam,
    Mul,
    ScalarParam,
    ShapeError,
    Sigmoid,
    Sum,
    Tanh,
    UninitializedAccessError,
    VectorConstant,
    VectorMul,
    VectorParam,
    sigmoid,
)
from sentiment_blocks.gradient_check import check_gradient
from sentiment_blocks.loss import NegativeLogLikelihoodLoss


class CountingParam(VectorParam):
    """VectorParam that counts how often its value is computed."""

    def __init__(self, dim):
        super().__init__(dim)
        self.evaluations = 0

    def _forward(self):
        self.evaluations += 1
        return super()._forward()


def readout(block: Block, dim: int) -> Dot:
    """Reduce a vector block to a scalar with a fixed random projection."""
    return Dot(VectorConstant(np.random.uniform(-1, 1, size=dim)), block)


class TestParameters:
    """Tests for parameter leaf blocks."""

    def test_vector_param_shape(self):
        """Test vector parameter value and gradient shapes."""
        param = VectorParam(5)
        assert param.param.shape == (5,)
        assert param.grad.shape == (5,)
        assert np.all(param.grad == 0)

    def test_vector_param_small_random_init(self):
        """Test random initialization stays small."""
        param = VectorParam(100)
        assert np.all(np.abs(param.param) <= 0.1)
        assert not np.all(param.param == param.param[0])

    def test_vector_param_constant_init(self):
        """Test initialization with a constant."""
        param = VectorParam(3, init=1.0)
        assert np.array_equal(param.param, np.ones(3))

    def test_vector_param_array_init_shape_checked(self):
        """Test array initialization with the wrong shape."""
        with pytest.raises(ShapeError):
            VectorParam(3, init=np.ones(4))

    def test_matrix_param_shape(self):
        """Test matrix parameter shapes."""
        param = MatrixParam(2, 3)
        assert param.param.shape == (2, 3)
        assert param.grad.shape == (2, 3)

    def test_forward_returns_stored_value(self):
        """Test that forward returns the parameter value unchanged."""
        param = VectorParam(3, init=np.array([1.0, 2.0, 3.0]))
        assert np.array_equal(param.forward(), [1.0, 2.0, 3.0])

    def test_backward_accumulates(self):
        """Test that repeated backward calls sum their gradients."""
        param = VectorParam(2)
        param.forward()
        param.backward(np.array([1.0, 2.0]))
        param.backward(np.array([0.5, -1.0]))
        assert np.allclose(param.grad, [1.5, 1.0])

    def test_backward_wrong_shape(self):
        """Test that a mismatched gradient is rejected."""
        param = VectorParam(2)
        param.forward()
        with pytest.raises(ShapeError):
            param.backward(np.ones(3))

    def test_reset_gradient(self):
        """Test gradient reset."""
        param = MatrixParam(2, 2)
        param.forward()
        param.backward(np.ones((2, 2)))
        param.reset_gradient()
        assert np.all(param.grad == 0)

    def test_set_broadcasts(self):
        """Test assigning a constant to every component."""
        param = VectorParam(4)
        param.set(0.0)
        assert np.all(param.param == 0)

    def test_scalar_param(self):
        """Test scalar parameter accumulation."""
        param = ScalarParam(2.0)
        assert param.forward() == 2.0
        param.backward(0.5)
        param.backward(0.25)
        assert param.grad == 0.75

    def test_constant_ignores_gradient(self):
        """Test that a constant vector stops gradients."""
        constant = VectorConstant(np.ones(2))
        constant.forward()
        constant.backward(np.ones(2))
        assert np.array_equal(constant.forward(), np.ones(2))


class TestForwardValues:
    """Tests for forward values of operation blocks."""

    def test_sum(self):
        """Test elementwise sum."""
        a = VectorParam(2, init=np.array([1.0, 2.0]))
        b = VectorParam(2, init=np.array([3.0, -1.0]))
        assert np.array_equal(Sum([a, b]).forward(), [4.0, 1.0])

    def test_sum_of_one_is_identity(self):
        """Test that a single-input sum equals its input."""
        a = VectorParam(3)
        assert np.array_equal(Sum([a]).forward(), a.param)

    def test_sum_does_not_alias_input(self):
        """Test that a single-input sum does not hand out the parameter buffer."""
        a = VectorParam(3)
        out = Sum([a]).forward()
        out += 1.0
        assert not np.array_equal(out, a.param)

    def test_vector_mul(self):
        """Test elementwise product."""
        a = VectorParam(2, init=np.array([2.0, 3.0]))
        b = VectorParam(2, init=np.array([4.0, -1.0]))
        assert np.array_equal(VectorMul(a, b).forward(), [8.0, -3.0])

    def test_mul(self):
        """Test matrix-vector product."""
        w = MatrixParam(2, 3, init=np.arange(6.0).reshape(2, 3))
        x = VectorParam(3, init=np.array([1.0, 0.0, -1.0]))
        assert np.array_equal(Mul(w, x).forward(), [-2.0, -2.0])

    def test_dot(self):
        """Test inner product."""
        a = VectorParam(3, init=np.array([1.0, 2.0, 3.0]))
        b = VectorParam(3, init=np.array([4.0, 5.0, 6.0]))
        result = Dot(a, b).forward()
        assert isinstance(result, float)
        assert result == 32.0

    def test_sigmoid(self):
        """Test logistic function."""
        assert Sigmoid(ScalarParam(0.0)).forward() == 0.5
        assert np.isclose(Sigmoid(ScalarParam(2.0)).forward(), 1.0 / (1.0 + np.exp(-2.0)))

    def test_sigmoid_extreme_inputs(self):
        """Test that extreme inputs are clamped instead of overflowing."""
        high = Sigmoid(ScalarParam(1e6)).forward()
        low = Sigmoid(ScalarParam(-1e6)).forward()
        assert high == 1.0
        assert 0.0 <= low < 1e-200
        assert np.isfinite(sigmoid(-1e308))

    def test_tanh(self):
        """Test elementwise tanh."""
        x = VectorParam(3, init=np.array([-1.0, 0.0, 2.0]))
        assert np.allclose(Tanh(x).forward(), np.tanh([-1.0, 0.0, 2.0]))


class TestMemoization:
    """Tests for per-pass caching of forward values."""

    def test_shared_input_evaluated_once_per_pass(self):
        """Test that a node consumed twice is computed once."""
        leaf = CountingParam(3)
        hidden = Tanh(leaf)
        Dot(hidden, hidden).forward()
        assert leaf.evaluations == 1

    def test_new_pass_recomputes(self):
        """Test that each top-level forward call recomputes."""
        leaf = CountingParam(3)
        root = Sum([leaf, leaf])
        root.forward()
        root.forward()
        assert leaf.evaluations == 2

    def test_new_pass_sees_updated_parameters(self):
        """Test that values change after the parameter changes."""
        x = VectorParam(2, init=np.array([1.0, 1.0]))
        root = Tanh(x)
        before = root.forward().copy()
        x.set(0.0)
        after = root.forward()
        assert not np.array_equal(before, after)
        assert np.array_equal(after, [0.0, 0.0])

    def test_failed_pass_does_not_poison_next_pass(self):
        """Test that a shape error leaves no active pass behind."""
        a = VectorParam(2)
        b = VectorParam(3)
        with pytest.raises(ShapeError):
            Dot(a, b).forward()
        assert np.allclose(Dot(a, a).forward(), np.dot(a.param, a.param))


class TestShapeErrors:
    """Tests for incompatible input dimensions."""

    def test_sum_mismatch(self):
        with pytest.raises(ShapeError):
            Sum([VectorParam(2), VectorParam(3)]).forward()

    def test_sum_empty(self):
        with pytest.raises(ShapeError):
            Sum([]).forward()

    def test_vector_mul_mismatch(self):
        with pytest.raises(ShapeError):
            VectorMul(VectorParam(2), VectorParam(3)).forward()

    def test_dot_mismatch(self):
        with pytest.raises(ShapeError):
            Dot(VectorParam(2), VectorParam(3)).forward()

    def test_mul_mismatch(self):
        with pytest.raises(ShapeError):
            Mul(MatrixParam(2, 3), VectorParam(2)).forward()

    def test_mul_requires_matrix(self):
        with pytest.raises(ShapeError):
            Mul(VectorParam(3), VectorParam(3)).forward()


class TestUninitializedAccess:
    """Tests for backward before forward."""

    def test_param_backward_before_forward(self):
        with pytest.raises(UninitializedAccessError):
            VectorParam(2).backward(np.ones(2))

    def test_operation_backward_before_forward(self):
        with pytest.raises(UninitializedAccessError):
            Tanh(VectorParam(2)).backward(np.ones(2))

    def test_new_node_over_evaluated_input(self):
        """Test that an unevaluated node is rejected even if its inputs ran."""
        x = VectorParam(2)
        x.forward()
        with pytest.raises(UninitializedAccessError):
            Sum([x]).backward(np.ones(2))


class TestGradients:
    """Tests comparing backward against finite differences."""

    def test_sum_gradient(self):
        a, b = VectorParam(3), VectorParam(3)
        loss = readout(Sum([a, b]), 3)
        check_gradient(loss, a)
        check_gradient(loss, b)

    def test_vector_mul_gradient(self):
        a, b = VectorParam(3), VectorParam(3)
        loss = readout(VectorMul(a, b), 3)
        check_gradient(loss, a)
        check_gradient(loss, b)

    def test_mul_gradient(self):
        w, x = MatrixParam(2, 3), VectorParam(3)
        loss = readout(Mul(w, x), 2)
        check_gradient(loss, w)
        check_gradient(loss, x)

    def test_dot_gradient(self):
        a, b = VectorParam(4), VectorParam(4)
        loss = Dot(a, b)
        check_gradient(loss, a)
        check_gradient(loss, b)

    def test_tanh_gradient(self):
        x = VectorParam(4, init=np.array([-2.0, -0.1, 0.3, 1.5]))
        check_gradient(readout(Tanh(x), 4), x)

    @pytest.mark.parametrize("value", [-3.0, -1e-4, 0.0, 1e-4, 2.5])
    def test_sigmoid_gradient(self, value):
        x = ScalarParam(value)
        check_gradient(NegativeLogLikelihoodLoss(Sigmoid(x), 1.0), x)

    def test_dropout_test_time_gradient(self):
        x = VectorParam(3)
        check_gradient(readout(Dropout(0.5, x, is_test_time=True), 3), x)

    def test_composed_graph_gradient(self):
        """Test a small network with every operation block."""
        w = MatrixParam(3, 3)
        a, b = VectorParam(3), VectorParam(3)
        v = VectorParam(3)
        hidden = Tanh(Sum([Mul(w, a), VectorMul(a, b), b]))
        loss = NegativeLogLikelihoodLoss(Sigmoid(Dot(v, hidden)), 0.0)
        for param in (w, a, b, v):
            check_gradient(loss, param)


class TestAccumulation:
    """Tests for gradient accumulation on shared parameters."""

    def test_same_input_twice_in_sum(self):
        """Test a parameter referenced twice receives both contributions."""
        a = VectorParam(3)
        c = VectorConstant(np.array([1.0, 2.0, 3.0]))

        single = Dot(c, Sum([a]))
        single.forward()
        single.backward(1.0)
        once = a.grad.copy()

        a.reset_gradient()
        double = Dot(c, Sum([a, a]))
        double.forward()
        double.backward(1.0)

        assert np.allclose(a.grad, 2 * once)

    def test_dot_with_itself(self):
        """Test d(a.a)/da = 2a."""
        a = VectorParam(3)
        loss = Dot(a, a)
        loss.forward()
        loss.backward(1.0)
        assert np.allclose(a.grad, 2 * a.param)

    def test_gradients_accumulate_across_graphs(self):
        """Test two graphs sharing a parameter add into the same buffer."""
        shared = VectorParam(2)
        first = Dot(VectorConstant(np.array([1.0, 0.0])), shared)
        second = Dot(VectorConstant(np.array([0.0, 3.0])), shared)

        first.forward()
        second.forward()
        first.backward(1.0)
        second.backward(1.0)

        assert np.allclose(shared.grad, [1.0, 3.0])


class TestDropout:
    """Tests for the dropout block."""

    @pytest.mark.parametrize("prob", [0.0, 0.3, 0.5, 0.99, 1.0])
    def test_test_time_is_identity(self, prob):
        """Test that test-time dropout returns its input exactly."""
        x = VectorParam(50)
        out = Dropout(prob, x, is_test_time=True).forward()
        assert np.array_equal(out, x.param)

    def test_invalid_probability(self):
        with pytest.raises(ValueError):
            Dropout(1.0, VectorParam(2))
        with pytest.raises(ValueError):
            Dropout(-0.1, VectorParam(2))
        with pytest.raises(ValueError):
            Dropout(1.1, VectorParam(2), is_test_time=True)

    def test_full_probability_rejected_when_switched_to_training(self):
        dropout = Dropout(1.0, VectorParam(2), is_test_time=True)
        dropout.is_test_time = False
        with pytest.raises(ValueError):
            dropout.forward()

    def test_training_zeroes_and_rescales(self, rng):
        """Test that kept components are scaled by 1 / (1 - p)."""
        x = VectorParam(200, init=1.0)
        out = Dropout(0.5, x, rng=rng).forward()
        assert set(np.unique(out)) <= {0.0, 2.0}
        assert 0 < np.sum(out == 0) < 200

    def test_mask_consistency(self, rng):
        """Test backward zeroes exactly the positions forward dropped."""
        x = VectorParam(200, init=1.0)
        dropout = Dropout(0.4, x, rng=rng)
        out = dropout.forward()
        dropout.backward(np.ones(200))

        assert np.array_equal(out == 0, x.grad == 0)
        assert np.allclose(x.grad[out != 0], 1.0 / 0.6)

    def test_mask_resampled_each_pass(self, rng):
        """Test that a new forward pass draws a new mask."""
        x = VectorParam(200, init=1.0)
        dropout = Dropout(0.5, x, rng=rng)
        first = dropout.forward().copy()
        second = dropout.forward()
        assert not np.array_equal(first, second)

    def test_mask_shared_within_pass(self, rng):
        """Test that consumers in one pass see the same mask."""
        x = VectorParam(100, init=1.0)
        dropout = Dropout(0.5, x, rng=rng)
        root = VectorMul(dropout, dropout)
        out = root.forward()
        assert set(np.unique(out)) <= {0.0, 4.0}

    def test_training_gradient_with_fixed_mask(self, rng):
        """Test the analytic gradient equals mask times upstream gradient."""
        x = VectorParam(10)
        c = np.random.uniform(-1, 1, size=10)
        dropout = Dropout(0.3, x, rng=rng)
        loss = Dot(VectorConstant(c), dropout)
        loss.forward()
        loss.backward(1.0)
        assert np.allclose(x.grad, c * dropout.mask)

    def test_shared_dropout_backward_uses_latest_forward(self, rng):
        """Test a dropout shared by two roots keeps the mask of the root forwarded last."""
        x = VectorParam(50, init=1.0)
        dropout = Dropout(0.5, x, rng=rng)
        first = Dot(VectorConstant(np.ones(50)), dropout)
        second = Dot(VectorConstant(np.ones(50)), dropout)

        first.forward()
        second.forward()
        latest_mask = dropout.mask.copy()
        first.backward(1.0)

        assert np.array_equal(x.grad, latest_mask)
