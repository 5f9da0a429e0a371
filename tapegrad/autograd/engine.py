"""
tapegrad Autograd - Engine
==========================

Gradient tape and reverse pass.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple
import heapq
import logging

import numpy as np

from ..core.storage import DTYPE, Shape

logger = logging.getLogger(__name__)

BackwardRule = Callable[[np.ndarray], Tuple[np.ndarray, ...]]


@dataclass(frozen=True)
class TapeEntry:
    """
    One recorded operation.

    Attributes
    ----------
    parent_ids : Tuple[int, ...]
        Ids of the operation's inputs
    result_id : int
        Id of the operation's output
    backward_rule : BackwardRule
        Maps the gradient of the output to one contribution per parent
    """
    parent_ids: Tuple[int, ...]
    result_id: int
    backward_rule: BackwardRule


class GradientTape:
    """
    Records operations for backward pass.

    Usage:
        x = Tensor1D[3]([1.0, 2.0, 3.0])
        y = x.trace().square()
        tape = y.backward()
        tape.gradient_for(x)     # [2, 4, 6]

    Or with the tape held explicitly:
        tape = GradientTape()
        y = x.trace(tape).sin().square()
        tape.gradient_for(x.id)  # seeds at the last recorded result

    Every call to ``backward`` recomputes gradients from scratch, so one tape
    can be replayed from different seeds. ``gradient_for`` reuses the result
    of the most recent pass and only runs one itself when nothing has been
    computed since the last recording.
    """

    def __init__(self):
        self._entries: List[TapeEntry] = []
        self._entry_keys: Set[int] = set()
        self._shapes: Dict[int, Shape] = {}
        self._grads: Optional[Dict[int, np.ndarray]] = None
        if __debug__:
            self._produced: Set[int] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"GradientTape(entries={len(self._entries)})"

    @property
    def entries(self) -> Tuple[TapeEntry, ...]:
        return tuple(self._entries)

    @property
    def terminal_id(self) -> Optional[int]:
        """Result id of the most recently recorded entry."""
        if not self._entries:
            return None
        return self._entries[-1].result_id

    def watch(self, tensor) -> None:
        """Register a tensor's shape so zero gradients for it have that shape."""
        self._shapes[tensor.id] = tensor.shape

    def record(
        self,
        parent_ids: Iterable[int],
        result_id: int,
        backward_rule: BackwardRule,
        shapes: Optional[Mapping[int, Shape]] = None,
    ) -> TapeEntry:
        """
        Append an operation to the tape.

        Parameters
        ----------
        parent_ids : Iterable[int]
            Ids of the inputs, in the order ``backward_rule`` returns
            contributions
        result_id : int
            Id of the output
        backward_rule : BackwardRule
            Local chain-rule step
        shapes : Optional[Mapping[int, Shape]]
            Shapes of the ids involved

        Returns
        -------
        The recorded entry
        """
        entry = TapeEntry(tuple(parent_ids), result_id, backward_rule)
        if __debug__:
            assert result_id not in entry.parent_ids, (
                f"entry for id {result_id} lists itself as a parent"
            )
            assert result_id not in self._produced, (
                f"id {result_id} was already produced by an earlier entry"
            )
            self._produced.add(result_id)
        self._append(entry)
        if shapes:
            self._shapes.update(shapes)
        self._grads = None
        logger.debug("recorded %s -> %d (%d entries)", entry.parent_ids, result_id, len(self._entries))
        return entry

    def _append(self, entry: TapeEntry) -> None:
        self._entries.append(entry)
        self._entry_keys.add(id(entry))

    def merge(self, other: 'GradientTape') -> 'GradientTape':
        """
        Absorb the entries of another tape.

        Entries already on this tape are skipped. The rest are interleaved
        with this tape's entries by result id; ids are issued when a result
        is created, before it is recorded, so ordering by result id puts
        every producer ahead of its consumers even when the two tapes
        recorded around a shared, re-traced intermediate. Entry objects are
        shared between the two tapes, not copied.
        """
        if other is self:
            return self
        incoming = [entry for entry in other._entries if id(entry) not in self._entry_keys]
        if incoming:
            merged = list(heapq.merge(self._entries, incoming, key=lambda e: e.result_id))
            self._entries = []
            self._entry_keys = set()
            for entry in merged:
                self._append(entry)
            if __debug__:
                self._produced.update(entry.result_id for entry in incoming)
            self._grads = None
        for key, shape in other._shapes.items():
            self._shapes.setdefault(key, shape)
        logger.debug("merged %d entries from %r into %r", len(incoming), other, self)
        return self

    def backward(
        self,
        outputs=None,
        seed: Optional[np.ndarray] = None,
    ) -> 'GradientTape':
        """
        Compute gradients via reverse-mode autodiff.

        Parameters
        ----------
        outputs : tensor, id, sequence of them, or None
            What to seed. Each output is seeded with ones of its shape; their
            contributions add up. None seeds the terminal id.
        seed : Optional[np.ndarray]
            Explicit initial gradient, only for a single output

        Returns
        -------
        This tape, with gradients available through ``gradient_for``
        """
        if outputs is None:
            keys = [] if self.terminal_id is None else [self.terminal_id]
        elif isinstance(outputs, (list, tuple)):
            keys = list(outputs)
        else:
            keys = [outputs]

        if seed is not None and len(keys) != 1:
            raise ValueError("An explicit seed needs exactly one output")

        grads: Dict[int, np.ndarray] = {}
        for key in keys:
            key_id, shape = self._resolve(key)
            if seed is not None:
                grad = np.array(seed, dtype=DTYPE)
                if shape is not None and grad.shape != shape:
                    raise ValueError(f"Seed of shape {grad.shape} does not match {shape}")
            else:
                grad = np.ones(() if shape is None else shape, dtype=DTYPE)
            if key_id in grads:
                grads[key_id] = grads[key_id] + grad
            else:
                grads[key_id] = grad

        visited = 0
        for entry in reversed(self._entries):
            grad = grads.get(entry.result_id)
            if grad is None:
                # result never influenced a seed
                continue
            visited += 1
            contributions = entry.backward_rule(grad)
            for parent_id, contribution in zip(entry.parent_ids, contributions):
                if parent_id in grads:
                    grads[parent_id] = grads[parent_id] + contribution
                else:
                    grads[parent_id] = np.zeros_like(contribution, dtype=DTYPE) + contribution

        logger.debug(
            "backward from %s: visited %d of %d entries",
            [self._resolve(k)[0] for k in keys], visited, len(self._entries),
        )
        self._grads = grads
        return self

    def gradient_for(self, key, shape: Optional[Shape] = None) -> np.ndarray:
        """
        Gradient accumulated for a tensor (or tensor id).

        Runs a backward pass seeded at the terminal id if no pass has run
        since the last recording. Ids that received no contribution get a
        zero array: of the tensor's shape when a tensor is given, else of
        ``shape``, else of the shape registered on the tape, else ``()``.
        """
        if self._grads is None:
            self.backward()
        key_id, known_shape = self._resolve(key)
        if shape is None:
            shape = known_shape
        grad = self._grads.get(key_id)
        if grad is None:
            return np.zeros(() if shape is None else shape, dtype=DTYPE)
        return np.array(grad, dtype=DTYPE, copy=True)

    def _resolve(self, key) -> Tuple[int, Optional[Shape]]:
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
            return int(key), self._shapes.get(int(key))
        if hasattr(key, 'id') and hasattr(key, 'shape'):
            return key.id, key.shape
        raise TypeError(f"Expected a tensor or tensor id, got {type(key)}")


def backward(output, seed: Optional[np.ndarray] = None) -> GradientTape:
    """
    Run the reverse pass from a traced tensor.

    Parameters
    ----------
    output : Tensor
        Tensor to seed; must hold a tape
    seed : Optional[np.ndarray]
        Initial gradient (defaults to ones)

    Returns
    -------
    The output's tape
    """
    tape = output.tape
    if tape is None:
        raise RuntimeError(
            f"{output!r} is not traced; call trace() on an input before building the computation"
        )
    return tape.backward(output, seed=seed)
