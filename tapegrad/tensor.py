"""Fixed-shape tensors that record their history on a gradient tape."""

from __future__ import annotations
from functools import lru_cache
from typing import Any, Callable, Optional, Tuple, Type, Union
import numpy as np

from .core import storage
from .core.storage import DTYPE, Shape, check_shape, next_id
from .autograd.engine import GradientTape, backward as _backward
from .autograd.elementwise import (
    ElementwiseOp,
    ReLU,
    Sin,
    Cos,
    Ln,
    Exp,
    Sigmoid,
    Tanh,
    Square,
    Abs,
    apply,
)
from .autograd.grad_fn import (
    AddBackward,
    SubBackward,
    MulBackward,
    ScaleBackward,
    SumBackward,
    MeanBackward,
)


class Tensor:
    """
    A float32 array of fixed shape, a unique id, and an optional tape.

    Concrete types fix rank and extents by subscripting a rank class:

        >>> x = Tensor2D[2, 3].zeros()
        >>> x.shape
        (2, 3)

    The shape belongs to the type, so every elementwise operation returns an
    instance of the same type. Shapes are checked when data enters a tensor.

    The tape is a shared reference: an operation on a traced tensor records
    onto the tensor's tape and hands the same tape to its result.
    """

    RANK: Optional[int] = None
    SHAPE: Optional[Shape] = None

    def __class_getitem__(cls, extents) -> Type['Tensor']:
        if cls.RANK is None or cls.SHAPE is not None:
            raise TypeError(f"{cls.__name__} cannot be subscripted")
        if not isinstance(extents, tuple):
            extents = (extents,)
        return _shaped_type(cls, check_shape(extents, cls.RANK))

    def __init__(self, data: Any, tape: Optional[GradientTape] = None):
        """
        Create a tensor holding a copy of ``data``.

        Args:
            data: Array-like with exactly this type's shape
            tape: Tape to record onto (usually set by ``trace``)
        """
        self._check_shaped()
        self._data = storage.as_array(data, self.SHAPE)
        self._id = next_id()
        self.tape = tape

    @classmethod
    def _check_shaped(cls) -> None:
        if cls.SHAPE is None:
            hint = "" if cls.RANK is None else f", e.g. {cls.__name__}[{', '.join(['2'] * cls.RANK)}]"
            raise TypeError(f"{cls.__name__} has no shape; subscript it with extents{hint}")

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls) -> 'Tensor':
        cls._check_shaped()
        return cls(storage.zeros(cls.SHAPE))

    @classmethod
    def ones(cls) -> 'Tensor':
        cls._check_shaped()
        return cls(storage.ones(cls.SHAPE))

    @classmethod
    def rand(cls, rng=None) -> 'Tensor':
        """Uniform samples in [0, 1) from ``rng`` (a numpy Generator)."""
        cls._check_shaped()
        return cls(storage.rand(cls.SHAPE, rng))

    @classmethod
    def randn(cls, rng=None) -> 'Tensor':
        """Standard-normal samples from ``rng`` (a numpy Generator)."""
        cls._check_shaped()
        return cls(storage.randn(cls.SHAPE, rng))

    # ------------------------------------------------------------------
    # Identity and data
    # ------------------------------------------------------------------

    @property
    def id(self) -> int:
        """Unique id used to look up this tensor's gradient."""
        return self._id

    @property
    def shape(self) -> Shape:
        return self.SHAPE

    @property
    def ndim(self) -> int:
        return self.RANK

    def data(self) -> np.ndarray:
        """Read-only view of the data."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def mut_data(self) -> np.ndarray:
        """The writable backing array."""
        return self._data

    def numpy(self) -> np.ndarray:
        """Copy of the data."""
        return self._data.copy()

    def item(self) -> float:
        return float(self._data.item())

    def __repr__(self) -> str:
        data_str = np.array2string(self._data, precision=4, suppress_small=True)
        traced = ", traced" if self.tape is not None else ""
        return f"{type(self).__name__}({data_str}, id={self._id}{traced})"

    # ------------------------------------------------------------------
    # Gradient tracking
    # ------------------------------------------------------------------

    def trace(self, tape: Optional[GradientTape] = None) -> 'Tensor':
        """
        Alias of this tensor that records operations.

        The alias has the same id and a copy of the data, so gradients
        computed through it apply to this tensor.

        Args:
            tape: Tape to record onto (default: a new one)

        Returns:
            Traced alias
        """
        alias = object.__new__(type(self))
        alias._data = self._data.copy()
        alias._id = self._id
        alias.tape = GradientTape() if tape is None else tape
        alias.tape.watch(alias)
        return alias

    def backward(self, seed: Optional[np.ndarray] = None) -> GradientTape:
        """
        Run the reverse pass seeded at this tensor.

        Returns:
            The tape, holding gradients for every tensor that led here
        """
        return _backward(self, seed)

    def update_with_gradients(self, tape: GradientTape) -> None:
        """Subtract this tensor's gradient on ``tape`` from its data, in place."""
        grad = tape.gradient_for(self)
        if grad.shape != self.shape:
            raise ValueError(f"Gradient of shape {grad.shape} does not match {self.shape}")
        self._data -= grad

    def randomize(self, sampler: Callable[..., Any]) -> None:
        """
        Refill the data in place from ``sampler(size=shape)``.

        Example:
            >>> rng = np.random.default_rng(0)
            >>> w.randomize(rng.standard_normal)
        """
        self._data[...] = storage.as_array(sampler(size=self.shape), self.shape)

    # ------------------------------------------------------------------
    # Elementwise operations
    # ------------------------------------------------------------------

    def apply(self, op: Type[ElementwiseOp]) -> 'Tensor':
        return apply(self, op)

    def relu(self) -> 'Tensor':
        return apply(self, ReLU)

    def sin(self) -> 'Tensor':
        return apply(self, Sin)

    def cos(self) -> 'Tensor':
        return apply(self, Cos)

    def ln(self) -> 'Tensor':
        return apply(self, Ln)

    def exp(self) -> 'Tensor':
        return apply(self, Exp)

    def sigmoid(self) -> 'Tensor':
        return apply(self, Sigmoid)

    def tanh(self) -> 'Tensor':
        return apply(self, Tanh)

    def square(self) -> 'Tensor':
        return apply(self, Square)

    def abs(self) -> 'Tensor':
        return apply(self, Abs)

    # ------------------------------------------------------------------
    # Binary operations and reductions
    # ------------------------------------------------------------------

    def add(self, other: 'Tensor') -> 'Tensor':
        self._check_operand(other)
        out = type(self)(self._data + other._data)
        return _link(out, (self, other), AddBackward(self.id, other.id))

    def sub(self, other: 'Tensor') -> 'Tensor':
        self._check_operand(other)
        out = type(self)(self._data - other._data)
        return _link(out, (self, other), SubBackward(self.id, other.id))

    def mul(self, other: Union['Tensor', float]) -> 'Tensor':
        """Elementwise product with a tensor of the same shape, or scaling by a number."""
        if isinstance(other, (int, float, np.floating, np.integer)) and not isinstance(other, bool):
            return self.scale(other)
        self._check_operand(other)
        out = type(self)(self._data * other._data)
        grad_fn = MulBackward(self.id, other.id, self._data.copy(), other._data.copy())
        return _link(out, (self, other), grad_fn)

    def scale(self, factor: float) -> 'Tensor':
        factor = float(factor)
        with np.errstate(over='ignore', invalid='ignore'):
            out = type(self)(self._data * factor)
        return _link(out, (self,), ScaleBackward(self.id, factor))

    def sum(self) -> 'Tensor0D':
        out = Tensor0D(np.sum(self._data))
        return _link(out, (self,), SumBackward(self.id, self.shape))

    def mean(self) -> 'Tensor0D':
        out = Tensor0D(np.mean(self._data))
        return _link(out, (self,), MeanBackward(self.id, self.shape))

    def _check_operand(self, other) -> None:
        if not isinstance(other, Tensor):
            raise TypeError(f"Expected a Tensor operand, got {type(other)}")
        if other.shape != self.shape:
            raise ValueError(f"Shape mismatch: {self.shape} vs {other.shape}")

    def __add__(self, other: 'Tensor') -> 'Tensor':
        return self.add(other)

    def __sub__(self, other: 'Tensor') -> 'Tensor':
        return self.sub(other)

    def __mul__(self, other: Union['Tensor', float]) -> 'Tensor':
        return self.mul(other)

    def __rmul__(self, other: float) -> 'Tensor':
        return self.mul(other)

    def __truediv__(self, other: float) -> 'Tensor':
        if not isinstance(other, (int, float, np.floating, np.integer)):
            return NotImplemented
        with np.errstate(divide='ignore', invalid='ignore'):
            factor = DTYPE(1) / DTYPE(other)
        return self.scale(factor)

    def __neg__(self) -> 'Tensor':
        return self.scale(-1.0)


class Tensor0D(Tensor):
    RANK = 0
    SHAPE = ()


class Tensor1D(Tensor):
    RANK = 1


class Tensor2D(Tensor):
    RANK = 2


class Tensor3D(Tensor):
    RANK = 3


class Tensor4D(Tensor):
    RANK = 4


_RANK_TYPES = (Tensor0D, Tensor1D, Tensor2D, Tensor3D, Tensor4D)


@lru_cache(maxsize=None)
def _shaped_type(rank_type: Type[Tensor], shape: Shape) -> Type[Tensor]:
    name = f"{rank_type.__name__}[{', '.join(str(e) for e in shape)}]"
    return type(name, (rank_type,), {
        'SHAPE': shape,
        '__module__': rank_type.__module__,
        '__qualname__': name,
    })


def _join_tapes(tensors: Tuple[Tensor, ...]) -> Optional[GradientTape]:
    tapes = [t.tape for t in tensors if t.tape is not None]
    if not tapes:
        return None
    tape = tapes[0]
    for other in tapes[1:]:
        tape.merge(other)
    return tape


def _link(out: Tensor, inputs: Tuple[Tensor, ...], grad_fn) -> Tensor:
    """Record ``grad_fn`` for ``out`` if any input is traced."""
    tape = _join_tapes(inputs)
    if tape is not None:
        shapes = {t.id: t.shape for t in inputs}
        shapes[out.id] = out.shape
        tape.record(grad_fn.parent_ids, out.id, grad_fn.apply, shapes=shapes)
        out.tape = tape
    return out


def tensor(data: Any, tape: Optional[GradientTape] = None) -> Tensor:
    """
    Create a tensor whose type is inferred from the data's shape.

    Example:
        >>> x = tensor([1.0, 2.0, 3.0])
        >>> type(x).__name__
        'Tensor1D[3]'
    """
    arr = np.asarray(data, dtype=DTYPE)
    if arr.ndim >= len(_RANK_TYPES):
        raise TypeError(f"Rank {arr.ndim} exceeds maximum rank {len(_RANK_TYPES) - 1}")
    rank_type = _RANK_TYPES[arr.ndim]
    cls = rank_type if arr.ndim == 0 else rank_type[arr.shape]
    return cls(arr, tape=tape)
