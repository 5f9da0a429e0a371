"""
tapegrad Autograd - Gradient Functions
======================================

Backward rules recorded on the gradient tape. Each rule maps the gradient of
an operation's output to one gradient contribution per parent.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Tuple, Dict, Any
from dataclasses import dataclass, field
import numpy as np

from ..core.storage import DTYPE, Shape, numel


@dataclass
class SavedContext:
    """
    Saved arrays and metadata for backward pass.
    """
    tensors: Dict[str, np.ndarray] = field(default_factory=dict)
    scalars: Dict[str, Any] = field(default_factory=dict)

    def save_for_backward(self, **kwargs):
        for k, v in kwargs.items():
            if isinstance(v, np.ndarray):
                self.tensors[k] = v
            else:
                self.scalars[k] = v


class GradFn(ABC):
    """
    Base class for backward functions.

    Each operation defines how gradients flow backward. Instances are
    recorded on the tape through their bound ``apply`` method.
    """

    def __init__(self, *parent_ids: int):
        self._parent_ids = parent_ids
        self.ctx = SavedContext()

    @property
    def parent_ids(self) -> Tuple[int, ...]:
        """Ids of the tensors this operation consumed."""
        return self._parent_ids

    @abstractmethod
    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray, ...]:
        """
        Compute gradients w.r.t. inputs given gradient of output.

        Parameters
        ----------
        grad_output : np.ndarray
            Gradient of the seed w.r.t. this operation's output

        Returns
        -------
        Tuple of gradients, one per parent id
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(parents={self._parent_ids})"


class ElementwiseBackward(GradFn):
    """Backward for y = f(x): dL/dx = dL/dy * f'(x)"""

    def __init__(self, op, x_id: int, x: np.ndarray):
        super().__init__(x_id)
        self.op = op
        self.ctx.save_for_backward(x=x)

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray]:
        x = self.ctx.tensors['x']
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            return (grad_output * self.op.derivative(x),)

    def __repr__(self) -> str:
        return f"ElementwiseBackward({self.op.name}, parents={self._parent_ids})"


class AddBackward(GradFn):
    """Backward for z = x + y. Both parents receive the incoming gradient."""

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return (grad_output,) * len(self._parent_ids)


class SubBackward(GradFn):
    """Backward for subtraction: z = x - y"""

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return grad_output, -grad_output


class MulBackward(GradFn):
    """
    Backward for elementwise multiplication: z = x * y

    Each parent's local partial is the other factor, saved at record time.
    """

    def __init__(self, x_id: int, y_id: int, x: np.ndarray, y: np.ndarray):
        super().__init__(x_id, y_id)
        self.ctx.save_for_backward(wrt_x=y, wrt_y=x)

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        partials = self.ctx.tensors
        return grad_output * partials['wrt_x'], grad_output * partials['wrt_y']


class ScaleBackward(GradFn):
    """Backward for scaling by a constant: z = c * x"""

    def __init__(self, x_id: int, factor: float):
        super().__init__(x_id)
        self.ctx.save_for_backward(factor=factor)

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray]:
        factor = self.ctx.scalars['factor']
        with np.errstate(over='ignore', invalid='ignore'):
            return ((grad_output * factor).astype(DTYPE),)


class SumBackward(GradFn):
    """Backward for sum: z = sum(x)"""

    def __init__(self, x_id: int, shape: Shape):
        super().__init__(x_id)
        self.ctx.save_for_backward(shape=shape)

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray]:
        shape = self.ctx.scalars['shape']
        # Gradient broadcasts back to input shape
        return (np.ones(shape, dtype=DTYPE) * grad_output,)


class MeanBackward(GradFn):
    """Backward for mean: z = mean(x)"""

    def __init__(self, x_id: int, shape: Shape):
        super().__init__(x_id)
        self.ctx.save_for_backward(shape=shape)

    def apply(self, grad_output: np.ndarray) -> Tuple[np.ndarray]:
        shape = self.ctx.scalars['shape']
        n = numel(shape)
        # Gradient is 1/n broadcast to input shape
        return (np.ones(shape, dtype=DTYPE) * grad_output / DTYPE(n),)
