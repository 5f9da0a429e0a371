"""
tapegrad Autograd - Gradient Checking
=====================================

Finite-difference checks for operation descriptors and recorded tapes.
"""

from __future__ import annotations
from typing import Callable, Sequence, Type
import numpy as np

from .elementwise import ElementwiseOp


def numerical_derivative(f: Callable, x, h: float = 1e-4) -> np.ndarray:
    """Central difference (f(x + h) - f(x - h)) / 2h, evaluated in float64."""
    x = np.asarray(x, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        return (f(x + h) - f(x - h)) / (2 * h)


def check_derivative(
    op: Type[ElementwiseOp],
    xs: Sequence[float],
    h: float = 1e-4,
    atol: float = 1e-5,
    rtol: float = 1e-4,
) -> bool:
    """
    Verify an operation's analytic derivative numerically.

    Parameters
    ----------
    op : Type[ElementwiseOp]
        Descriptor to check
    xs : Sequence[float]
        Sample points; keep them away from kinks and domain edges
    h : float
        Finite difference step size
    atol, rtol : float
        Absolute and relative tolerance

    Returns
    -------
    True if derivatives match, raises AssertionError otherwise
    """
    xs = np.asarray(xs, dtype=np.float64)
    analytic = op.derivative(xs)
    numeric = numerical_derivative(op.forward, xs, h)
    if not np.allclose(analytic, numeric, atol=atol, rtol=rtol):
        raise AssertionError(
            f"Derivative check failed for {op.name}: "
            f"analytic={analytic}, numerical={numeric}, diff={analytic - numeric}"
        )
    return True


def check_gradients(
    func: Callable,
    tensor,
    eps: float = 1e-2,
    atol: float = 1e-2,
    rtol: float = 1e-2,
) -> bool:
    """
    Verify tape gradients numerically.

    Compares the gradient recorded for ``tensor`` with finite differences of
    ``func``. Tensor data is float32, hence the loose defaults.

    Parameters
    ----------
    func : Callable
        Maps a tensor to a rank-0 tensor
    tensor : Tensor
        Point at which to differentiate; left unchanged
    eps : float
        Finite difference step size
    atol, rtol : float
        Absolute and relative tolerance

    Returns
    -------
    True if gradients match, raises AssertionError otherwise
    """
    cls = type(tensor)
    analytical = func(tensor.trace()).backward().gradient_for(tensor)

    base = tensor.numpy()
    numerical = np.zeros(base.shape, dtype=np.float64)
    for j in range(base.size):
        plus = base.copy()
        minus = base.copy()
        plus.flat[j] += eps
        minus.flat[j] -= eps

        f_plus = float(func(cls(plus)).numpy())
        f_minus = float(func(cls(minus)).numpy())
        # the float32 step actually taken
        step = float(plus.flat[j]) - float(minus.flat[j])
        numerical.flat[j] = (f_plus - f_minus) / step

    if not np.allclose(analytical, numerical, atol=atol, rtol=rtol):
        raise AssertionError(
            f"Gradient check failed for {tensor!r}: "
            f"analytical={analytical}, numerical={numerical}, diff={analytical - numerical}"
        )
    return True
