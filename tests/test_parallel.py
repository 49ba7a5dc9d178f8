"""Tests for the fan-out helper used by clone and deploy."""
import threading
import time

import pytest

from stackup.core.parallel import run_all


def test_sequential_preserves_order():
    assert run_all([3, 1, 2], lambda x: x * 10) == [30, 10, 20]


def test_parallel_preserves_input_order():
    def slow_first(x):
        time.sleep(0.05 if x == 0 else 0)
        return x

    assert run_all(list(range(5)), slow_first, parallel=True) == [0, 1, 2, 3, 4]


def test_parallel_uses_worker_threads():
    seen = set()

    def record(_):
        seen.add(threading.get_ident())
        time.sleep(0.02)

    run_all(range(4), record, parallel=True, max_workers=4)

    assert threading.get_ident() not in seen


def test_single_item_runs_inline():
    assert run_all(["x"], lambda _: threading.get_ident(), parallel=True) == [threading.get_ident()]


def test_exception_propagates():
    def boom(x):
        if x == 2:
            raise RuntimeError("failed on 2")
        return x

    with pytest.raises(RuntimeError, match="failed on 2"):
        run_all([1, 2, 3], boom, parallel=True)
