"""
tapegrad: Reverse-Mode Autodiff for Fixed-Shape Tensors
=======================================================

tapegrad records operations on small float32 tensors (rank 0 through 4) onto
a gradient tape and replays the tape backward to produce the gradient of any
result with respect to every tensor that contributed to it.

Example:
    >>> import tapegrad as tg
    >>> x = tg.Tensor1D[3]([1.0, 2.0, 3.0])
    >>> y = x.trace().square()
    >>> tape = y.backward()
    >>> tape.gradient_for(x)
    array([2., 4., 6.], dtype=float32)
    >>> x.update_with_gradients(tape)  # x is now [-1, -2, -3]
"""

__version__ = "0.1.0"

# Core types
from .tensor import Tensor, Tensor0D, Tensor1D, Tensor2D, Tensor3D, Tensor4D, tensor

# Autograd
from .autograd import (
    GradientTape,
    TapeEntry,
    backward,
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
    OPS,
    apply,
    check_derivative,
    check_gradients,
)

# Low-level core (for advanced users)
from .core import DTYPE, next_id


__all__ = [
    # Version
    "__version__",

    # Tensors
    "Tensor",
    "Tensor0D",
    "Tensor1D",
    "Tensor2D",
    "Tensor3D",
    "Tensor4D",
    "tensor",

    # Autograd
    "GradientTape",
    "TapeEntry",
    "backward",
    "apply",
    "check_derivative",
    "check_gradients",

    # Operations
    "ElementwiseOp",
    "ReLU",
    "Sin",
    "Cos",
    "Ln",
    "Exp",
    "Sigmoid",
    "Tanh",
    "Square",
    "Abs",
    "OPS",

    # Core (advanced)
    "DTYPE",
    "next_id",
]
