from __future__ import annotations

import os
import sys

import numpy as np
import pytest

# Ensure project root is on sys.path for direct script runs
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)
from sample_history import SampleHistory


def test_starts_zero_filled():
    h = SampleHistory(5)
    assert h.capacity == 5
    assert len(h) == 5
    assert np.array_equal(h.as_vector(), np.zeros(5))


@pytest.mark.parametrize("capacity", [1, 2, 3, 7])
def test_window_is_newest_first_for_any_count(capacity):
    h = SampleHistory(capacity)
    values = np.arange(1, 3 * capacity + 2, dtype=np.float64)
    for n, v in enumerate(values, start=1):
        h.insert(v)
        expected = values[:n][::-1][:capacity]
        expected = np.concatenate((expected, np.zeros(capacity - expected.size)))
        assert np.array_equal(h.as_vector(), expected)


def test_as_vector_returns_copy():
    h = SampleHistory(3)
    h.insert(1.0)
    v = h.as_vector()
    v[:] = 99.0
    assert np.array_equal(h.as_vector(), [1.0, 0.0, 0.0])


def test_reductions_use_newest_first_alignment():
    h = SampleHistory(4)
    for v in [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]:
        h.insert(v)
    window = h.as_vector()
    assert np.array_equal(window, [6.0, 5.0, 4.0, 3.0])

    w = np.array([1.0, 10.0, 100.0, 1000.0])
    assert h.inner_product(w) == 6.0 + 50.0 + 400.0 + 3000.0
    assert h.squared_norm() == 36.0 + 25.0 + 16.0 + 9.0

    acc = np.zeros(4)
    h.accumulate_into(acc, 0.5)
    assert np.array_equal(acc, 0.5 * window)


def test_squared_norm_non_negative():
    rng = np.random.default_rng(3)
    h = SampleHistory(16)
    for v in rng.uniform(-1e3, 1e3, 100):
        h.insert(v)
        assert h.squared_norm() >= 0.0


@pytest.mark.parametrize("capacity", [0, -1, 2.5, True])
def test_rejects_bad_capacity(capacity):
    with pytest.raises(ValueError):
        SampleHistory(capacity)


def _run_nonpytest(run_all: bool, tests: list[str]):
    available = {
        "zero": test_starts_zero_filled,
        "copy": test_as_vector_returns_copy,
        "reductions": test_reductions_use_newest_first_alignment,
        "energy": test_squared_norm_non_negative,
    }

    selected = available.values() if run_all else [available[name] for name in tests]
    failures = 0

    for fn in selected:
        try:
            fn()
            print(f"[PASS] {fn.__name__}")
        except AssertionError as exc:
            failures += 1
            print(f"[FAIL] {fn.__name__}: {exc}")

    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run sample history unit tests without pytest.")
    parser.add_argument(
        "--all",
        action="store_true",
        help="Run all tests (default if no --tests provided).",
    )
    parser.add_argument(
        "--tests",
        nargs="*",
        default=[],
        choices=["zero", "copy", "reductions", "energy"],
        help="Select specific tests to run.",
    )

    args = parser.parse_args()
    run_all = args.all or not args.tests
    _run_nonpytest(run_all=run_all, tests=args.tests)
