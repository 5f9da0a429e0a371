"""
tapegrad Autograd Module
========================

Reverse-mode automatic differentiation on a gradient tape.

Every traced operation appends an entry (parent ids, result id, backward
rule) to a tape. The reverse pass walks the entries newest first and
accumulates one gradient array per tensor id, skipping entries whose result
never reached a seed.
"""

from .engine import GradientTape, TapeEntry, backward
from .grad_fn import (
    GradFn,
    SavedContext,
    ElementwiseBackward,
    AddBackward,
    SubBackward,
    MulBackward,
    ScaleBackward,
    SumBackward,
    MeanBackward,
)
from .elementwise import (
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
)
from .gradcheck import numerical_derivative, check_derivative, check_gradients

__all__ = [
    # Engine
    'GradientTape',
    'TapeEntry',
    'backward',

    # Backward functions
    'GradFn',
    'SavedContext',
    'ElementwiseBackward',
    'AddBackward',
    'SubBackward',
    'MulBackward',
    'ScaleBackward',
    'SumBackward',
    'MeanBackward',

    # Elementwise operations
    'ElementwiseOp',
    'ReLU',
    'Sin',
    'Cos',
    'Ln',
    'Exp',
    'Sigmoid',
    'Tanh',
    'Square',
    'Abs',
    'OPS',
    'apply',

    # Checks
    'numerical_derivative',
    'check_derivative',
    'check_gradients',
]
