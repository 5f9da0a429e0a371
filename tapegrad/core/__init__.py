"""Core storage and identity infrastructure for tapegrad."""

from .storage import (
    DTYPE,
    MAX_RANK,
    next_id,
    check_shape,
    as_array,
    zeros,
    ones,
    rand,
    randn,
)

__all__ = [
    'DTYPE',
    'MAX_RANK',
    'next_id',
    'check_shape',
    'as_array',
    'zeros',
    'ones',
    'rand',
    'randn',
]
