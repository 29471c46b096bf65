"""
Normalized Least-Mean-Square (NLMS) adaptive FIR filter.

The engine learns the coefficients of an unknown linear system from paired
input / desired-output samples, one sample per call. Two causal orderings are
supported:

- ``run(input, desired)``: filter then adapt. The new sample enters the
  window, the output is computed with the current weights, the error
  ``desired - output`` is stored and the weights are adapted on that window.
- ``run_error_in(input, error)``: adapt then filter. The caller supplies the
  error (e.g. from an external feedback path); the weights are adapted on the
  window *before* the new sample, then the new sample enters the window and
  the output is computed with the updated weights.

NLMS update:
    energy    = sum_i h[i]**2
    norm_step = step_size / (regularization + energy)
    w[i]     += norm_step * error * h[i]

The update is skipped, and the normalized step recorded as 0.0, whenever it
cannot be applied with finite numbers: ``regularization + energy`` exactly
zero, or a denominator so small (e.g. a subnormal energy with zero
regularization) that the step or ``step * error`` overflows. The weights
therefore never pick up NaN/Inf.
"""

from __future__ import annotations

import math
import numbers
from typing import Iterable, Union

import numpy as np

from sample_history import SampleHistory


__all__ = ["ConfigurationError", "AdaptiveFilterEngine", "DEFAULT_REGULARIZATION"]

ArrayLike = Union[np.ndarray, Iterable[float]]

DEFAULT_REGULARIZATION = 1e-10


class ConfigurationError(ValueError):
    """Invalid engine construction parameters."""


def _as_weight_vector(weights: ArrayLike) -> np.ndarray:
    try:
        raw = np.asarray(weights)
    except ValueError as exc:
        raise ConfigurationError("weights must be a vector of real numbers.") from exc
    if np.iscomplexobj(raw):
        raise ConfigurationError("weights must be real.")
    try:
        arr = raw.astype(np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("weights must be a vector of real numbers.") from exc
    if arr.ndim == 0:
        raise ConfigurationError("weights must be a vector, got a scalar.")
    if arr.ndim > 1:
        # row/column vectors are fine, matrices are not
        if arr.size != max(arr.shape):
            raise ConfigurationError(f"weights must be a vector, got shape {arr.shape}.")
        arr = arr.reshape(-1)
    if arr.size == 0:
        raise ConfigurationError("weights must contain at least one tap.")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError("weights must be finite.")
    return np.ascontiguousarray(arr)


def _as_real_scalar(value, name: str) -> float:
    if isinstance(value, np.ndarray) and value.ndim == 0:
        value = value.item()
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a single real scalar, got {value!r}.")
    out = float(value)
    if not math.isfinite(out):
        raise ConfigurationError(f"{name} must be finite, got {out}.")
    return out


class AdaptiveFilterEngine:
    """
    Adaptive FIR filter with an NLMS weight update.

    Args:
        weights: Initial coefficients; their count fixes the filter length L.
            The array is copied, the engine never aliases caller storage.
        step_size: Nominal adaptation rate mu (> 0).
        regularization: Non-negative constant added to the window energy in
            the normalization denominator.

    Raises:
        ConfigurationError: on an empty/non-vector weight set, a non-scalar or
            non-positive step size, or a non-scalar or negative regularization.

    Not thread safe: both entry points mutate weights, history and error in
    place. Use one engine per signal.
    """

    def __init__(
        self,
        weights: ArrayLike,
        step_size: float,
        regularization: float = DEFAULT_REGULARIZATION,
    ):
        w = _as_weight_vector(weights)
        mu = _as_real_scalar(step_size, "step_size")
        if mu <= 0.0:
            raise ConfigurationError(f"step_size must be > 0, got {mu}.")
        eps = _as_real_scalar(regularization, "regularization")
        if eps < 0.0:
            raise ConfigurationError(f"regularization must be >= 0, got {eps}.")

        self._w = w
        self._history = SampleHistory(w.size)
        self._mu = mu
        self._eps = eps
        self._error = 0.0
        self._step = 0.0

    def __repr__(self) -> str:
        return (
            f"AdaptiveFilterEngine(length={self.length}, step_size={self._mu}, "
            f"regularization={self._eps})"
        )

    # ---------------- observable state ----------------

    @property
    def length(self) -> int:
        return self._w.size

    @property
    def step_size(self) -> float:
        return self._mu

    @property
    def regularization(self) -> float:
        return self._eps

    @property
    def weights(self) -> np.ndarray:
        """Copy of the current coefficient estimate."""
        return self._w.copy()

    @property
    def last_error(self) -> float:
        return self._error

    @property
    def last_step(self) -> float:
        """Normalized step used by the most recent adaptation (0.0 if skipped)."""
        return self._step

    @property
    def history(self) -> np.ndarray:
        """Copy of the sample window, newest first."""
        return self._history.as_vector()

    # ---------------- per-sample entry points ----------------

    def run(self, input: float, desired: float) -> float:
        """Filter then adapt; returns the output computed before adaptation."""
        output = self._filter(input)
        self._error = float(desired) - output
        self._adapt()
        return output

    def run_error_in(self, input: float, error: float) -> float:
        """Adapt on the previous window with ``error``, then filter ``input``."""
        self._error = float(error)
        self._adapt()
        return self._filter(input)

    # ---------------- internals ----------------

    def _filter(self, input: float) -> float:
        self._history.insert(float(input))
        return self._history.inner_product(self._w)

    def _adapt(self) -> None:
        denom = self._eps + self._history.squared_norm()
        if denom == 0.0:
            self._step = 0.0
            return
        step = self._mu / denom
        gain = step * self._error
        # subnormal energy overflows the step; skip rather than spread inf/nan
        if not (math.isfinite(step) and math.isfinite(gain)):
            self._step = 0.0
            return
        self._step = step
        self._history.accumulate_into(self._w, gain)
