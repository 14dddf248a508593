"""Tests for oneshot.py - write-once notification."""

from __future__ import annotations

import threading
import time

import pytest

from tmppg.oneshot import OneShot


def test_unset_oneshot():
    signal: OneShot[int] = OneShot()

    assert signal.is_set() is False
    assert signal.peek() is None
    assert signal.wait(timeout=0.01) is None


def test_set_then_peek_and_wait():
    signal: OneShot[str] = OneShot()
    signal.set("exited")

    assert signal.is_set() is True
    # Reading never consumes the value
    assert signal.peek() == "exited"
    assert signal.peek() == "exited"
    assert signal.wait() == "exited"
    assert signal.wait(timeout=0) == "exited"


def test_second_set_raises():
    signal: OneShot[int] = OneShot()
    signal.set(1)

    with pytest.raises(RuntimeError, match="already set"):
        signal.set(2)

    assert signal.peek() == 1


def test_wait_wakes_when_set_from_another_thread():
    signal: OneShot[int] = OneShot()
    results: list[int | None] = []

    waiters = [threading.Thread(target=lambda: results.append(signal.wait())) for _ in range(3)]
    for waiter in waiters:
        waiter.start()

    time.sleep(0.05)
    assert results == []

    signal.set(42)
    for waiter in waiters:
        waiter.join(timeout=2.0)

    assert results == [42, 42, 42]


def test_concurrent_set_publishes_exactly_once():
    signal: OneShot[int] = OneShot()
    errors: list[Exception] = []

    def publish(value: int) -> None:
        try:
            signal.set(value)
        except RuntimeError as e:
            errors.append(e)

    threads = [threading.Thread(target=publish, args=(i,)) for i in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(errors) == 9
    assert signal.peek() in range(10)
