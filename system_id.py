"""
System-identification harness for the NLMS adaptive filter.

A fixed reference FIR (the "unknown" system) filters seeded uniform noise to
produce the desired signal; an AdaptiveFilterEngine is driven one sample at a
time and its convergence is tracked with two metrics, both on a dB scale:

- misalignment:  ||W* - W||^2 / ||W*||^2
- squared error: (desired - output)^2

Defaults reproduce the reference test: 30 taps, mu = 0.3, eps = 1e-10,
5000 iterations, seed 824, pass thresholds of -290 dB on both metrics.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from tqdm import tqdm

from adaptive_filter import AdaptiveFilterEngine
from sample_history import SampleHistory


NUM_TAPS = 30
STEP_SIZE = 0.3
REGULARIZATION = 1e-10
ITERATIONS = 5000
SEED = 824
MISALIGNMENT_PASS_THRESH_DB = -290.0
SQUARED_ERROR_PASS_THRESH_DB = -290.0
DB_FLOOR = 1e-40  # minimum 10*log10() value of -400 dB

MODES = ("desired", "error_in")


@dataclass(frozen=True)
class SystemIdConfig:
    """
    Harness parameters.

    mode:
        'desired'  -> engine.run(x[n], d[n])
        'error_in' -> engine.run_error_in(x[n], e[n-1]), where the caller
                      computes e[n-1] = d[n-1] - y[n-1] from the previous output
    """
    num_taps: int = NUM_TAPS
    step_size: float = STEP_SIZE
    regularization: float = REGULARIZATION
    iterations: int = ITERATIONS
    seed: int = SEED
    misalignment_threshold_db: float = MISALIGNMENT_PASS_THRESH_DB
    squared_error_threshold_db: float = SQUARED_ERROR_PASS_THRESH_DB
    db_floor: float = DB_FLOOR
    mode: str = "desired"

    def __post_init__(self):
        if self.num_taps < 1:
            raise ValueError("num_taps must be >= 1.")
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1.")
        if self.step_size <= 0:
            raise ValueError("step_size must be > 0.")
        if self.regularization < 0:
            raise ValueError("regularization must be >= 0.")
        if self.db_floor < 0:
            raise ValueError("db_floor must be >= 0.")
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}.")


class ReferenceFir:
    """Fixed FIR filter used as the system to identify (same tap alignment as the engine)."""

    def __init__(self, weights: np.ndarray):
        self.weights = np.ascontiguousarray(weights, dtype=np.float64)
        if self.weights.ndim != 1 or self.weights.size == 0:
            raise ValueError("reference weights must be a non-empty 1D array.")
        self._history = SampleHistory(self.weights.size)

    def filter(self, x: float) -> float:
        self._history.insert(float(x))
        return self._history.inner_product(self.weights)

    def filter_signal(self, x: np.ndarray) -> np.ndarray:
        out = np.empty(len(x), dtype=np.float64)
        for n, xn in enumerate(x):
            out[n] = self.filter(xn)
        return out


# ----------------------------
# Metrics
# ----------------------------
def to_db(value: Union[float, np.ndarray], floor: float = DB_FLOOR) -> Union[float, np.ndarray]:
    """Power quantity to dB: 10*log10(floor + value)."""
    out = 10.0 * np.log10(floor + np.asarray(value, dtype=np.float64))
    return float(out) if np.ndim(out) == 0 else out


def misalignment(true_weights: np.ndarray, weights: np.ndarray) -> float:
    """Normalized weight error ||W* - W||^2 / ||W*||^2."""
    true_weights = np.asarray(true_weights, dtype=np.float64)
    weights = np.asarray(weights, dtype=np.float64)
    if true_weights.shape != weights.shape:
        raise ValueError(
            f"weight vectors differ in shape: {true_weights.shape} vs {weights.shape}."
        )
    ref = float(np.sum(true_weights * true_weights))
    if ref == 0.0:
        raise ValueError("misalignment is undefined for an all-zero target.")
    diff = true_weights - weights
    return float(np.sum(diff * diff)) / ref


# ----------------------------
# Signals
# ----------------------------
def make_test_signals(config: SystemIdConfig) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Returns (true_weights, x, d): target taps and input noise drawn uniform on
    [-1, 1] from one seeded generator, and d = reference FIR applied to x.
    """
    rng = np.random.default_rng(config.seed)
    true_weights = rng.uniform(-1.0, 1.0, config.num_taps)
    x = rng.uniform(-1.0, 1.0, config.iterations)
    d = ReferenceFir(true_weights).filter_signal(x)
    return true_weights, x, d


# ----------------------------
# Run
# ----------------------------
@dataclass
class ConvergenceResult:
    config: SystemIdConfig
    true_weights: np.ndarray
    weights: np.ndarray
    x: np.ndarray
    desired: np.ndarray
    output: np.ndarray
    error: np.ndarray
    weight_history: np.ndarray
    misalignment_db: np.ndarray
    squared_error_db: np.ndarray

    @property
    def final_misalignment_db(self) -> float:
        return float(self.misalignment_db[-1])

    @property
    def final_squared_error_db(self) -> float:
        return float(self.squared_error_db[-1])

    @property
    def misalignment_passed(self) -> bool:
        return self.final_misalignment_db <= self.config.misalignment_threshold_db

    @property
    def squared_error_passed(self) -> bool:
        return self.final_squared_error_db <= self.config.squared_error_threshold_db

    @property
    def passed(self) -> bool:
        return self.misalignment_passed and self.squared_error_passed

    def status_lines(self) -> List[str]:
        m_thr = self.config.misalignment_threshold_db
        e_thr = self.config.squared_error_threshold_db
        return [
            (f"PASS: Misalignment < {m_thr:.0f}" if self.misalignment_passed
             else f"FAIL: Misalignment !< {m_thr:.0f}"),
            (f"PASS: Squared Error < {e_thr:.0f}" if self.squared_error_passed
             else f"FAIL: Squared Error !< {e_thr:.0f}"),
        ]

    def summary(self) -> Dict[str, object]:
        return {
            "config": asdict(self.config),
            "final_misalignment_db": self.final_misalignment_db,
            "final_squared_error_db": self.final_squared_error_db,
            "misalignment_passed": self.misalignment_passed,
            "squared_error_passed": self.squared_error_passed,
            "passed": self.passed,
            "true_weights": self.true_weights.tolist(),
            "weights": self.weights.tolist(),
        }


def run_system_identification(
    config: Optional[SystemIdConfig] = None,
    progress: bool = False,
) -> ConvergenceResult:
    """Identify a random FIR with a fresh engine and record per-iteration metrics."""
    if config is None:
        config = SystemIdConfig()

    true_weights, x, d = make_test_signals(config)
    engine = AdaptiveFilterEngine(
        np.zeros(config.num_taps), config.step_size, config.regularization
    )

    n_iter = config.iterations
    y = np.zeros(n_iter, dtype=np.float64)
    e = np.zeros(n_iter, dtype=np.float64)
    w_hist = np.zeros((n_iter, config.num_taps), dtype=np.float64)
    mis = np.zeros(n_iter, dtype=np.float64)

    error_in = config.mode == "error_in"
    prev_error = 0.0

    with tqdm(total=n_iter, desc=f"NLMS ({config.mode})", disable=not progress) as pbar:
        for n in range(n_iter):
            if error_in:
                y[n] = engine.run_error_in(x[n], prev_error)
                prev_error = d[n] - y[n]
            else:
                y[n] = engine.run(x[n], d[n])
            e[n] = d[n] - y[n]
            w = engine.weights
            w_hist[n] = w
            mis[n] = misalignment(true_weights, w)
            pbar.update(1)

    return ConvergenceResult(
        config=config,
        true_weights=true_weights,
        weights=engine.weights,
        x=x,
        desired=d,
        output=y,
        error=e,
        weight_history=w_hist,
        misalignment_db=to_db(mis, config.db_floor),
        squared_error_db=to_db(e * e, config.db_floor),
    )
