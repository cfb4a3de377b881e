"""
Loss blocks.

Scalar blocks that sit at the root of a training graph. Calling
``backward(1.0)`` on a loss seeds the gradient of the whole graph.
"""

import math

import numpy as np

from .blocks import Block

LOG_EPSILON = 1e-12


class Loss(Block):
    """A block that evaluates to a scalar loss."""

    def backward(self, gradient: float = 1.0) -> None:
        raise NotImplementedError


class NegativeLogLikelihoodLoss(Loss):
    """
    Binary cross-entropy of a predicted probability against a target.

    Both p and 1 - p are floored at LOG_EPSILON before taking logarithms, in
    the forward and the backward pass alike, so the loss never exceeds
    -log(LOG_EPSILON).

    Args:
        arg: Block evaluating to a probability in [0, 1]
        target: Gold probability, usually 0.0 or 1.0
    """

    def __init__(self, arg: Block, target: float):
        super().__init__()
        if not 0.0 <= target <= 1.0:
            raise ValueError(f"Target must be in [0, 1], got {target}")
        self.arg = arg
        self.target = float(target)

    def _log_terms(self) -> tuple[float, float]:
        raw = float(self.arg.output)
        return max(raw, LOG_EPSILON), max(1.0 - raw, LOG_EPSILON)

    def _forward(self) -> float:
        self.arg.forward()
        p, q = self._log_terms()
        t = self.target
        return -(t * math.log(p) + (1.0 - t) * math.log(q))

    def backward(self, gradient: float = 1.0) -> None:
        self._require_output()
        p, q = self._log_terms()
        t = self.target
        self.arg.backward(gradient * -(t / p - (1.0 - t) / q))


class L2Regularization(Loss):
    """
    Squared L2 norm of a set of parameters, scaled by ``strength``.

    Works for vector and matrix arguments (Frobenius norm). With a strength of
    zero the block still visits every argument and sends it a zero gradient,
    so graphs keep the same shape whether regularization is active or not.
    """

    def __init__(self, strength: float, *args: Block):
        super().__init__()
        if strength < 0:
            raise ValueError(f"Regularization strength must be non-negative, got {strength}")
        self.strength = float(strength)
        self.args = list(args)

    def _forward(self) -> float:
        total = 0.0
        for arg in self.args:
            value = arg.forward()
            total += float(np.sum(np.square(value)))
        return self.strength * total

    def backward(self, gradient: float = 1.0) -> None:
        self._require_output()
        for arg in self.args:
            arg.backward(gradient * self.strength * 2.0 * np.asarray(arg.output))


class LossSum(Loss):
    """Sum of several losses; the incoming gradient goes to each unchanged."""

    def __init__(self, *args: Loss):
        super().__init__()
        self.args = list(args)

    def _forward(self) -> float:
        return sum(float(arg.forward()) for arg in self.args)

    def backward(self, gradient: float = 1.0) -> None:
        self._require_output()
        for arg in self.args:
            arg.backward(gradient)
