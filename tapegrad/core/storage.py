"""
tapegrad Core: Storage and Identity
===================================

The foundation layer - unique ids, shape descriptors and the dense float32
arrays that back every tensor.
"""

from __future__ import annotations
import itertools
import math
import threading
from typing import Any, Optional, Sequence, Tuple

import numpy as np


DTYPE = np.float32
MAX_RANK = 4

Shape = Tuple[int, ...]


# =============================================================================
# Unique identity
# =============================================================================

_id_counter = itertools.count()
_id_lock = threading.Lock()


def next_id() -> int:
    """
    Issue a fresh tensor id.

    Ids are strictly increasing for the lifetime of the process and are never
    reused, so a gradient keyed by id can never be confused with the gradient
    of an unrelated tensor.
    """
    with _id_lock:
        return next(_id_counter)


# =============================================================================
# Shapes
# =============================================================================

def check_shape(shape: Sequence[int], rank: Optional[int] = None) -> Shape:
    """
    Validate a shape descriptor and return it as a tuple.

    Parameters
    ----------
    shape : Sequence[int]
        Per-axis extents
    rank : Optional[int]
        Required number of axes, if any

    Raises
    ------
    TypeError
        If the rank is wrong or an extent is not an integer
    ValueError
        If an extent is not positive
    """
    shape = tuple(shape)
    if rank is not None and len(shape) != rank:
        raise TypeError(f"Expected {rank} extents, got {len(shape)}: {shape}")
    if len(shape) > MAX_RANK:
        raise TypeError(f"Rank {len(shape)} exceeds maximum rank {MAX_RANK}")
    for extent in shape:
        if isinstance(extent, bool) or not isinstance(extent, (int, np.integer)):
            raise TypeError(f"Extents must be integers, got {extent!r}")
        if extent <= 0:
            raise ValueError(f"Extents must be positive, got {shape}")
    return tuple(int(e) for e in shape)


def numel(shape: Shape) -> int:
    return math.prod(shape)


# =============================================================================
# Arrays
# =============================================================================

def as_array(data: Any, shape: Shape) -> np.ndarray:
    """Copy ``data`` into a fresh float32 array, checking it has ``shape``."""
    arr = np.array(data, dtype=DTYPE, copy=True)
    if arr.shape != shape:
        raise ValueError(f"Cannot use data of shape {arr.shape} for shape {shape}")
    return arr


def zeros(shape: Shape) -> np.ndarray:
    return np.zeros(shape, dtype=DTYPE)


def ones(shape: Shape) -> np.ndarray:
    return np.ones(shape, dtype=DTYPE)


def rand(shape: Shape, rng: Optional[Any] = None) -> np.ndarray:
    """Uniform samples in [0, 1) drawn from ``rng``."""
    if rng is None:
        rng = np.random.default_rng()
    return np.asarray(rng.random(size=shape), dtype=DTYPE).reshape(shape)


def randn(shape: Shape, rng: Optional[Any] = None) -> np.ndarray:
    """Standard-normal samples drawn from ``rng``."""
    if rng is None:
        rng = np.random.default_rng()
    return np.asarray(rng.standard_normal(size=shape), dtype=DTYPE).reshape(shape)
