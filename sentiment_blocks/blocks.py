"""
Computation graph blocks.

A block is a node in a small numeric computation graph. Every block knows how
to compute its forward value from its inputs and how to send a gradient back
to those inputs. Vectors and matrices are numpy arrays, scalars are floats.

Forward values are memoized per pass: the outermost ``forward()`` call opens a
pass, every block reached during that call is evaluated once, and the next
outermost call recomputes everything. Parameters accumulate gradients until
the caller resets them.
"""

import itertools
import math
import threading
from typing import Any

import numpy as np

SIGMOID_CLAMP = 500.0

_pass_ids = itertools.count(1)
_pass_state = threading.local()


class ShapeError(ValueError):
    """Exception raised when block inputs have incompatible dimensions."""
    pass


class UninitializedAccessError(RuntimeError):
    """Exception raised when backward is called before forward."""
    pass


def _shape_of(value: Any) -> tuple[int, ...]:
    return np.shape(value)


def _check_vector(block_name: str, value: Any) -> None:
    if np.ndim(value) != 1:
        raise ShapeError(f"{block_name} expects a vector input, got shape {_shape_of(value)}")


def _check_same_shape(block_name: str, values: list[Any]) -> None:
    first = _shape_of(values[0])
    for value in values[1:]:
        if _shape_of(value) != first:
            raise ShapeError(
                f"{block_name} inputs must share a shape, got "
                + ", ".join(str(_shape_of(v)) for v in values)
            )


def random_vector(dim: int, low: float = -0.1, high: float = 0.1) -> np.ndarray:
    """Uniformly random vector used to initialize parameters."""
    return np.random.uniform(low, high, size=dim)


def random_matrix(rows: int, cols: int, low: float = -0.1, high: float = 0.1) -> np.ndarray:
    """Uniformly random matrix used to initialize parameters."""
    return np.random.uniform(low, high, size=(rows, cols))


class Block:
    """
    Base class of every computation graph node.

    Subclasses implement ``_forward`` (compute the value from the inputs'
    ``forward()`` results) and ``backward`` (push a gradient to the inputs).
    ``forward`` itself handles memoization and must not be overridden.
    """

    def __init__(self):
        self.output: Any = None
        self._pass_id: int | None = None

    def forward(self) -> Any:
        """
        Evaluate the block.

        Returns the cached value when the block was already evaluated in the
        active pass. Called outside any pass, it opens a new one so that the
        whole graph below this block is recomputed exactly once.

        Returns:
            Forward value (float for scalar blocks, numpy array otherwise)
        """
        active = getattr(_pass_state, "pass_id", None)
        if active is None:
            _pass_state.pass_id = next(_pass_ids)
            try:
                return self.forward()
            finally:
                _pass_state.pass_id = None

        if self._pass_id != active:
            self.output = self._forward()
            self._pass_id = active
        return self.output

    def _forward(self) -> Any:
        raise NotImplementedError

    def backward(self, gradient: Any) -> None:
        """
        Propagate a gradient with respect to this block's output.

        Gradients are computed from the values each block cached in the most
        recent pass that reached it. A block shared by several roots holds
        the values of whichever root was forwarded last, so call ``backward``
        on a root before forwarding another root that shares its inner
        blocks. Parameters and constants are unaffected because their value
        does not change between passes.

        Args:
            gradient: Gradient of the final loss w.r.t. this block's output
        """
        raise NotImplementedError

    @property
    def is_evaluated(self) -> bool:
        return self._pass_id is not None

    def _require_output(self) -> None:
        if self._pass_id is None:
            raise UninitializedAccessError(
                f"backward called on {type(self).__name__} before forward"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ParamBlock(Block):
    """
    Leaf block holding trainable state.

    ``param`` is the value and ``grad`` the accumulated gradient. An external
    optimizer reads ``grad`` and calls ``reset_gradient`` between steps.
    """

    def __init__(self, param: Any, name: str | None = None):
        super().__init__()
        self.param = param
        self.grad = np.zeros_like(param)
        self.name = name

    def _forward(self) -> Any:
        return self.param

    def backward(self, gradient: Any) -> None:
        self._require_output()
        if _shape_of(gradient) != _shape_of(self.param):
            raise ShapeError(
                f"Gradient shape {_shape_of(gradient)} does not match "
                f"parameter shape {_shape_of(self.param)}"
            )
        self.grad += gradient

    def set(self, value: Any) -> None:
        """Assign ``value`` to every component (scalars are broadcast)."""
        self.param[...] = value

    def reset_gradient(self) -> None:
        self.grad = np.zeros_like(self.param)

    @property
    def size(self) -> int:
        return int(np.size(self.param))

    def __repr__(self) -> str:
        label = f"{self.name}, " if self.name else ""
        return f"{type(self).__name__}({label}shape={_shape_of(self.param)})"


class VectorParam(ParamBlock):
    """
    Trainable vector.

    Args:
        dim: Vector dimension
        init: Optional constant or array to initialize with; uniform random
            values in [-0.1, 0.1) otherwise
        name: Optional name used in logs and reprs
    """

    def __init__(self, dim: int, init: float | np.ndarray | None = None, name: str | None = None):
        if init is None:
            value = random_vector(dim)
        else:
            value = np.full(dim, init, dtype=float) if np.isscalar(init) else np.array(init, dtype=float)
            if value.shape != (dim,):
                raise ShapeError(f"Initial value has shape {value.shape}, expected ({dim},)")
        super().__init__(value, name=name)
        self.dim = dim


class MatrixParam(ParamBlock):
    """Trainable rows x cols matrix, initialized like ``VectorParam``."""

    def __init__(
        self,
        rows: int,
        cols: int,
        init: float | np.ndarray | None = None,
        name: str | None = None,
    ):
        if init is None:
            value = random_matrix(rows, cols)
        else:
            value = np.full((rows, cols), init, dtype=float) if np.isscalar(init) else np.array(init, dtype=float)
            if value.shape != (rows, cols):
                raise ShapeError(f"Initial value has shape {value.shape}, expected ({rows}, {cols})")
        super().__init__(value, name=name)
        self.rows = rows
        self.cols = cols


class ScalarParam(ParamBlock):
    """Trainable scalar."""

    def __init__(self, init: float = 0.0, name: str | None = None):
        super().__init__(float(init), name=name)
        self.grad = 0.0

    def backward(self, gradient: float) -> None:
        self._require_output()
        self.grad += float(gradient)

    def set(self, value: float) -> None:
        self.param = float(value)

    def reset_gradient(self) -> None:
        self.grad = 0.0


class VectorConstant(Block):
    """Fixed vector, e.g. a pretrained embedding. Gradients stop here."""

    def __init__(self, value: np.ndarray, name: str | None = None):
        super().__init__()
        self.param = np.array(value, dtype=float)
        self.name = name

    def _forward(self) -> np.ndarray:
        return self.param

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()

    def __repr__(self) -> str:
        label = f"{self.name}, " if self.name else ""
        return f"VectorConstant({label}shape={self.param.shape})"


class Sum(Block):
    """Elementwise sum of one or more vector blocks."""

    def __init__(self, args: list[Block]):
        super().__init__()
        self.args = list(args)

    def _forward(self) -> np.ndarray:
        if not self.args:
            raise ShapeError("Sum requires at least one input")
        values = [arg.forward() for arg in self.args]
        _check_same_shape("Sum", values)
        total = np.array(values[0], dtype=float)
        for value in values[1:]:
            total = total + value
        return total

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()
        for arg in self.args:
            arg.backward(gradient)


class VectorMul(Block):
    """Elementwise product of two vector blocks."""

    def __init__(self, arg1: Block, arg2: Block):
        super().__init__()
        self.arg1 = arg1
        self.arg2 = arg2

    def _forward(self) -> np.ndarray:
        a = self.arg1.forward()
        b = self.arg2.forward()
        _check_same_shape("VectorMul", [a, b])
        return a * b

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()
        self.arg1.backward(gradient * self.arg2.output)
        self.arg2.backward(gradient * self.arg1.output)


class Mul(Block):
    """Matrix-vector product ``W x``."""

    def __init__(self, matrix: Block, vector: Block):
        super().__init__()
        self.matrix = matrix
        self.vector = vector

    def _forward(self) -> np.ndarray:
        w = self.matrix.forward()
        x = self.vector.forward()
        if np.ndim(w) != 2:
            raise ShapeError(f"Mul expects a matrix, got shape {_shape_of(w)}")
        _check_vector("Mul", x)
        if w.shape[1] != x.shape[0]:
            raise ShapeError(f"Cannot multiply matrix {w.shape} with vector {x.shape}")
        return w @ x

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()
        self.matrix.backward(np.outer(gradient, self.vector.output))
        self.vector.backward(self.matrix.output.T @ gradient)


class Dot(Block):
    """Inner product of two vector blocks; evaluates to a float."""

    def __init__(self, arg1: Block, arg2: Block):
        super().__init__()
        self.arg1 = arg1
        self.arg2 = arg2

    def _forward(self) -> float:
        a = self.arg1.forward()
        b = self.arg2.forward()
        _check_vector("Dot", a)
        _check_vector("Dot", b)
        if a.shape != b.shape:
            raise ShapeError(f"Dot of vectors with different lengths: {a.shape} and {b.shape}")
        return float(np.dot(a, b))

    def backward(self, gradient: float) -> None:
        self._require_output()
        self.arg1.backward(gradient * self.arg2.output)
        self.arg2.backward(gradient * self.arg1.output)


def sigmoid(x: float) -> float:
    """Logistic function with inputs clamped to +/- SIGMOID_CLAMP."""
    x = min(max(x, -SIGMOID_CLAMP), SIGMOID_CLAMP)
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    e = math.exp(x)
    return e / (1.0 + e)


class Sigmoid(Block):
    """Logistic function of a scalar block."""

    def __init__(self, arg: Block):
        super().__init__()
        self.arg = arg

    def _forward(self) -> float:
        return sigmoid(float(self.arg.forward()))

    def backward(self, gradient: float) -> None:
        self._require_output()
        s = self.output
        self.arg.backward(gradient * s * (1.0 - s))


class Tanh(Block):
    """Elementwise hyperbolic tangent of a vector block."""

    def __init__(self, arg: Block):
        super().__init__()
        self.arg = arg

    def _forward(self) -> np.ndarray:
        return np.tanh(self.arg.forward())

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()
        self.arg.backward(gradient * (1.0 - self.output ** 2))


class Dropout(Block):
    """
    Inverted dropout on a vector block.

    In training mode each forward call samples a fresh mask that zeroes every
    component with probability ``prob`` and scales the kept ones by
    ``1 / (1 - prob)``. The mask is kept on the block so that ``backward``
    reuses exactly the mask of the matching forward call. At test time the
    input passes through untouched, whatever the probability.

    Args:
        prob: Probability of dropping a component, in [0, 1) for training
            and in [0, 1] at test time
        arg: Input vector block
        is_test_time: Whether to pass values through unchanged
        rng: Optional numpy Generator; numpy's global state otherwise
    """

    def __init__(
        self,
        prob: float,
        arg: Block,
        is_test_time: bool = False,
        rng: np.random.Generator | None = None,
    ):
        super().__init__()
        if not 0.0 <= prob <= 1.0:
            raise ValueError(f"Dropout probability must be in [0, 1], got {prob}")
        self.prob = prob
        self.arg = arg
        self.is_test_time = is_test_time
        self.rng = rng
        self.mask: np.ndarray | None = None
        if not is_test_time:
            self._check_training_prob()

    def _check_training_prob(self) -> None:
        if self.prob >= 1.0:
            raise ValueError(f"Training dropout probability must be in [0, 1), got {self.prob}")

    def _forward(self) -> np.ndarray:
        x = self.arg.forward()
        if self.is_test_time:
            self.mask = None
            return x
        self._check_training_prob()
        sample = self.rng.random(np.shape(x)) if self.rng is not None else np.random.random_sample(np.shape(x))
        keep = sample >= self.prob
        self.mask = keep / (1.0 - self.prob)
        return x * self.mask

    def backward(self, gradient: np.ndarray) -> None:
        self._require_output()
        if self.mask is None:
            self.arg.backward(gradient)
        else:
            self.arg.backward(gradient * self.mask)
