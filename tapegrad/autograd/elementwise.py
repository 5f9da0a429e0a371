"""
tapegrad Autograd - Elementwise Operations
==========================================

Operation descriptors pair a scalar function with its analytic derivative.
Both act elementwise on numpy arrays. Descriptors are stateless and are
passed around as classes, so ``apply(x, Sin)`` reads like a type-tagged call.

Domain errors follow IEEE arithmetic: ``Ln`` of a negative value is NaN and
of zero is -inf. They are never raised.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Type

import numpy as np

from .grad_fn import ElementwiseBackward


class ElementwiseOp(ABC):
    """
    A pure scalar function ``f`` and its derivative ``f'``.

    Subclasses provide both as static methods and a short ``name`` tag.
    """

    name: str = ""

    @staticmethod
    @abstractmethod
    def forward(x: np.ndarray) -> np.ndarray:
        ...

    @staticmethod
    @abstractmethod
    def derivative(x: np.ndarray) -> np.ndarray:
        ...


class ReLU(ElementwiseOp):
    name = "relu"

    @staticmethod
    def forward(x):
        return np.maximum(x, 0)

    @staticmethod
    def derivative(x):
        # zero at the kink
        return (x > 0).astype(np.result_type(x, np.float32))


class Sin(ElementwiseOp):
    name = "sin"

    @staticmethod
    def forward(x):
        return np.sin(x)

    @staticmethod
    def derivative(x):
        return np.cos(x)


class Cos(ElementwiseOp):
    name = "cos"

    @staticmethod
    def forward(x):
        return np.cos(x)

    @staticmethod
    def derivative(x):
        return -np.sin(x)


class Ln(ElementwiseOp):
    name = "ln"

    @staticmethod
    def forward(x):
        return np.log(x)

    @staticmethod
    def derivative(x):
        return 1 / x


class Exp(ElementwiseOp):
    name = "exp"

    @staticmethod
    def forward(x):
        return np.exp(x)

    @staticmethod
    def derivative(x):
        return np.exp(x)


class Sigmoid(ElementwiseOp):
    name = "sigmoid"

    @staticmethod
    def forward(x):
        return 1 / (1 + np.exp(-x))

    @staticmethod
    def derivative(x):
        s = 1 / (1 + np.exp(-x))
        return s * (1 - s)


class Tanh(ElementwiseOp):
    name = "tanh"

    @staticmethod
    def forward(x):
        return np.tanh(x)

    @staticmethod
    def derivative(x):
        t = np.tanh(x)
        return 1 - t * t


class Square(ElementwiseOp):
    name = "square"

    @staticmethod
    def forward(x):
        return x * x

    @staticmethod
    def derivative(x):
        return 2 * x


class Abs(ElementwiseOp):
    name = "abs"

    @staticmethod
    def forward(x):
        return np.abs(x)

    @staticmethod
    def derivative(x):
        return np.sign(x)


OPS: Dict[str, Type[ElementwiseOp]] = {
    op.name: op for op in (ReLU, Sin, Cos, Ln, Exp, Sigmoid, Tanh, Square, Abs)
}


def apply(tensor, op: Type[ElementwiseOp]):
    """
    Apply ``op`` to every element of ``tensor``.

    Returns a new tensor of the same type with a fresh id. If ``tensor`` is
    traced, an entry is recorded on its tape whose backward rule multiplies
    the output gradient by ``op.derivative`` at the input, and the result
    carries the same tape.

    Args:
        tensor: Input tensor
        op: Operation descriptor class

    Returns:
        Result tensor
    """
    x = tensor.data()
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        y = op.forward(x)
    out = type(tensor)(y)

    tape = tensor.tape
    if tape is not None:
        grad_fn = ElementwiseBackward(op, tensor.id, x.copy())
        tape.record(
            grad_fn.parent_ids,
            out.id,
            grad_fn.apply,
            shapes={tensor.id: tensor.shape, out.id: out.shape},
        )
        out.tape = tape
    return out
