"""
Fixed-capacity sample history (tap-delay line) for FIR filtering.

The window is stored as a ring: each insert overwrites the oldest slot and
advances a rotating write position, so no samples are shifted. Reads are
newest-first, i.e. index 0 is the most recent sample and index L-1 the
oldest, which is the alignment used for the FIR inner product
y = sum_i w[i] * h[i].
"""

from __future__ import annotations

import numpy as np
from numba import njit


# ----------------------------
# Ring kernels (newest -> oldest walk)
# ----------------------------
@njit(cache=True)
def _ring_inner_product(buf: np.ndarray, newest: int, w: np.ndarray) -> float:
    L = buf.size
    acc = 0.0
    p = newest
    for k in range(L):
        acc += w[k] * buf[p]
        p -= 1
        if p < 0:
            p = L - 1
    return acc


@njit(cache=True)
def _ring_squared_norm(buf: np.ndarray, newest: int) -> float:
    # plain left-to-right accumulation, no pairwise/compensated summation
    L = buf.size
    acc = 0.0
    p = newest
    for k in range(L):
        acc += buf[p] * buf[p]
        p -= 1
        if p < 0:
            p = L - 1
    return acc


@njit(cache=True)
def _ring_accumulate(buf: np.ndarray, newest: int, w: np.ndarray, gain: float) -> None:
    L = buf.size
    p = newest
    for k in range(L):
        w[k] += gain * buf[p]
        p -= 1
        if p < 0:
            p = L - 1


class SampleHistory:
    """
    The L most recent input samples, zero-filled before any input arrives.

    Only ``insert`` mutates the window. The write position is internal; callers
    read the window through ``as_vector`` or the reductions below, all of which
    use the newest-first alignment.
    """

    def __init__(self, capacity: int):
        if isinstance(capacity, bool) or int(capacity) != capacity:
            raise ValueError(f"capacity must be an integer, got {capacity!r}.")
        capacity = int(capacity)
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}.")

        self._buf = np.zeros(capacity, dtype=np.float64)
        # slot that receives the next sample
        self._cursor = 0

    @property
    def capacity(self) -> int:
        return self._buf.size

    def __len__(self) -> int:
        return self._buf.size

    def __repr__(self) -> str:
        return f"SampleHistory(capacity={self.capacity})"

    def _newest(self) -> int:
        p = self._cursor - 1
        return p if p >= 0 else self._buf.size - 1

    def insert(self, value: float) -> None:
        """Record ``value`` as the newest sample, evicting the oldest."""
        self._buf[self._cursor] = value
        self._cursor += 1
        if self._cursor == self._buf.size:
            self._cursor = 0

    def as_vector(self) -> np.ndarray:
        """Return a copy of the window, newest (index 0) to oldest (index L-1)."""
        newest = self._newest()
        return np.concatenate((self._buf[newest::-1], self._buf[:newest:-1]))

    def inner_product(self, weights: np.ndarray) -> float:
        """sum_i weights[i] * h[i], with weights[0] paired to the newest sample."""
        return float(_ring_inner_product(self._buf, self._newest(), weights))

    def squared_norm(self) -> float:
        """Energy of the window, sum_i h[i]**2."""
        return float(_ring_squared_norm(self._buf, self._newest()))

    def accumulate_into(self, weights: np.ndarray, gain: float) -> None:
        """In-place ``weights[i] += gain * h[i]``; ``weights`` must be float64 of length L."""
        _ring_accumulate(self._buf, self._newest(), weights, float(gain))
