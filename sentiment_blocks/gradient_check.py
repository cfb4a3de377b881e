"""
Finite-difference gradient checking.

Compares the gradient a graph's ``backward`` pass accumulates into a
parameter with a centered finite-difference estimate obtained by perturbing
each component of that parameter and re-running ``forward``.
"""

import logging

import numpy as np

from .blocks import Block, ParamBlock, ScalarParam

logger = logging.getLogger("sentiment_blocks")


class GradientCheckError(AssertionError):
    """Exception raised when analytic and numeric gradients disagree."""
    pass


def analytic_gradient(loss: Block, param: ParamBlock) -> np.ndarray:
    """
    Gradient of ``loss`` w.r.t. ``param`` as computed by backward.

    The parameter's gradient accumulator is reset first and left holding the
    result.
    """
    param.reset_gradient()
    loss.forward()
    loss.backward(1.0)
    return np.array(param.grad, dtype=float)


def numeric_gradient(loss: Block, param: ParamBlock, epsilon: float = 1e-6) -> np.ndarray:
    """
    Centered finite-difference gradient of ``loss`` w.r.t. ``param``.

    Args:
        loss: Scalar block whose value depends on ``param``
        param: Parameter to probe
        epsilon: Perturbation size

    Returns:
        Array shaped like the parameter
    """
    if isinstance(param, ScalarParam):
        original = param.param
        param.param = original + epsilon
        plus = loss.forward()
        param.param = original - epsilon
        minus = loss.forward()
        param.param = original
        return np.array((plus - minus) / (2.0 * epsilon))

    values = param.param
    gradient = np.zeros_like(values, dtype=float)
    for index in np.ndindex(values.shape):
        original = values[index]
        values[index] = original + epsilon
        plus = loss.forward()
        values[index] = original - epsilon
        minus = loss.forward()
        values[index] = original
        gradient[index] = (plus - minus) / (2.0 * epsilon)
    return gradient


def check_gradient(
    loss: Block,
    param: ParamBlock,
    epsilon: float = 1e-6,
    tolerance: float = 1e-5,
) -> float:
    """
    Verify the backward pass of ``loss`` for one parameter.

    Args:
        loss: Scalar block to differentiate
        param: Parameter to check
        epsilon: Perturbation size for the numeric estimate
        tolerance: Largest accepted absolute difference

    Returns:
        Largest absolute difference between the two gradients

    Raises:
        GradientCheckError: If the difference exceeds ``tolerance``
    """
    expected = numeric_gradient(loss, param, epsilon)
    actual = analytic_gradient(loss, param)
    difference = float(np.max(np.abs(expected - actual))) if expected.size else 0.0

    name = param.name or type(param).__name__
    if difference > tolerance:
        raise GradientCheckError(
            f"Gradient check failed for {name}: max difference {difference:.3e} "
            f"exceeds tolerance {tolerance:.1e}\n"
            f"  numeric:  {expected}\n"
            f"  analytic: {actual}"
        )

    logger.debug(f"Gradient check passed for {name} (max difference {difference:.3e})")
    return difference
