import queue
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from fakeclock.clock import new, new_mock
from fakeclock.context import background

MS = timedelta(milliseconds=1)
SEC = timedelta(seconds=1)
US = timedelta(microseconds=1)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _at(seconds=0, microseconds=0):
    return EPOCH + timedelta(seconds=seconds, microseconds=microseconds)


def _drain(q):
    count = 0
    while True:
        try:
            q.get_nowait()
        except queue.Empty:
            return count
        count += 1


def _advance(clock, step, times, q):
    total = 0
    for _ in range(times):
        clock.add(step)
        total += _drain(q)
    return total


def _elapsed(action):
    start = time.monotonic()
    action()
    return time.monotonic() - start


def _after_func_wait():
    done = threading.Event()
    new().after_func(20 * MS, done.set)
    assert done.wait(2)


def _reset_then_wait():
    timer = new().timer(10 * MS)
    assert timer.reset(20 * MS) is True
    timer.C.get(timeout=2)


@pytest.mark.parametrize(
    "action",
    [
        lambda: new().after(20 * MS).get(timeout=2),
        lambda: new().sleep(20 * MS),
        _after_func_wait,
        _reset_then_wait,
    ],
    ids=["after", "sleep", "after_func", "timer-reset"],
)
def test_real_waits_at_least(action):
    assert _elapsed(action) >= 0.019


def test_real_after_reports_time():
    clock = new()
    start = clock.now()
    fired = clock.after(20 * MS).get(timeout=2)
    assert fired - start >= 19 * MS


def test_real_now():
    diff = abs((new().now() - datetime.now(timezone.utc)).total_seconds())
    assert diff < 1


def test_real_ticker():
    clock = new()
    start = clock.now()
    ticker = clock.ticker(50 * MS)
    first = ticker.C.get(timeout=2)
    second = ticker.C.get(timeout=2)
    ticker.stop()
    assert second > first
    assert first - start >= 49 * MS
    assert clock.since(start) >= 99 * MS


def test_real_ticker_stop_and_reset():
    ticker = new().ticker(20 * MS)
    ticker.C.get(timeout=2)
    ticker.stop()
    with pytest.raises(queue.Empty):
        ticker.C.get(timeout=0.05)
    ticker.reset(5 * MS)
    assert isinstance(ticker.C.get(timeout=2), datetime)
    ticker.stop()


def test_real_ticker_rejects_zero():
    with pytest.raises(ValueError):
        new().ticker(timedelta(0))


def test_real_timer():
    timer = new().timer(20 * MS)
    timer.C.get(timeout=2)
    assert timer.stop() is False


def test_real_timer_stop():
    timer = new().timer(20 * MS)
    assert timer.stop() is True
    assert timer.stop() is False
    with pytest.raises(queue.Empty):
        timer.C.get(timeout=0.05)


def test_negative_duration_fires_immediately():
    clock = new_mock()
    timer = clock.timer(-SEC)
    assert timer.C.get_nowait() == clock.now()


def test_timer_reset_after_read():
    clock = new_mock()
    timer = clock.timer(SEC)
    clock.add(2 * SEC)
    assert timer.C.get_nowait() == _at(1)
    assert timer.reset(SEC) is False
    clock.add(SEC)
    assert timer.C.get_nowait() == _at(3)


def test_mock_after():
    clock = new_mock()
    ch = clock.after(10 * SEC)
    clock.add(9 * SEC)
    assert ch.empty()
    clock.add(SEC)
    assert ch.get_nowait() == _at(10)


def test_mock_unused_after_does_not_block():
    clock = new_mock()
    clock.after(MS)
    clock.add(SEC)
    assert clock.now() == _at(1)


def test_mock_after_func():
    clock = new_mock()
    calls = []
    clock.after_func(10 * SEC, lambda: calls.append(1))
    clock.add(9 * SEC)
    assert calls == []
    clock.add(SEC)
    assert calls == [1]


def test_mock_after_func_stop():
    clock = new_mock()
    calls = []
    timer = clock.after_func(10 * SEC, lambda: calls.append(1))
    assert timer.stop() is True
    clock.add(10 * SEC)
    assert calls == []


def test_mock_now():
    clock = new_mock()
    assert clock.now() == EPOCH
    clock.add(10 * SEC)
    assert clock.now() == _at(10)


def test_mock_since():
    clock = new_mock()
    beginning = clock.now()
    clock.add(500 * SEC)
    assert clock.since(beginning).total_seconds() == 500


def test_mock_until():
    clock = new_mock()
    end = clock.now() + 500 * SEC
    assert clock.until(end).total_seconds() == 500
    clock.add(100 * SEC)
    assert clock.until(end).total_seconds() == 400


def test_mock_set():
    clock = new_mock()
    fired = clock.after(5 * SEC)
    target = datetime(1970, 1, 2, tzinfo=timezone.utc)
    clock.set(target)
    assert clock.now() == target
    assert fired.get_nowait() == _at(5)


def test_mock_sleep():
    clock = new_mock()
    woke = threading.Event()

    def sleeper():
        clock.sleep(10 * SEC)
        woke.set()

    thread = threading.Thread(target=sleeper, daemon=True)
    thread.start()
    for _ in range(1000):
        if woke.wait(0.001):
            break
        clock.add(SEC)
    assert woke.is_set()
    assert clock.now() >= _at(10)


def test_mock_tick():
    clock = new_mock()
    tick = clock.tick(10 * SEC)
    assert _advance(clock, 9 * SEC, 1, tick) == 0
    assert _advance(clock, SEC, 1, tick) == 1
    assert _advance(clock, SEC, 30, tick) == 3


def test_mock_ticker():
    clock = new_mock()
    ticker = clock.ticker(US)
    assert _advance(clock, US, 10, ticker.C) == 10


def test_mock_ticker_overflow():
    clock = new_mock()
    ticker = clock.ticker(US)
    clock.add(10 * US)
    ticker.stop()
    assert ticker.C.qsize() == 1


def test_mock_ticker_stop():
    clock = new_mock()
    ticker = clock.ticker(SEC)
    assert _advance(clock, SEC, 5, ticker.C) == 5
    ticker.stop()
    assert _advance(clock, 5 * SEC, 1, ticker.C) == 0


def test_mock_ticker_reset():
    clock = new_mock()
    ticker = clock.ticker(5 * SEC)
    assert _advance(clock, 5 * SEC, 2, ticker.C) == 2
    clock.add(4 * SEC)
    ticker.reset(5 * SEC)
    assert _advance(clock, SEC, 1, ticker.C) == 0
    assert _advance(clock, 4 * SEC, 1, ticker.C) == 1
    ticker.stop()


def test_mock_ticker_stop_reset():
    clock = new_mock()
    ticker = clock.ticker(5 * SEC)
    assert _advance(clock, 5 * SEC, 2, ticker.C) == 2
    ticker.stop()
    assert _advance(clock, 5 * SEC, 1, ticker.C) == 0
    ticker.reset(2 * SEC)
    assert _advance(clock, 2 * SEC, 2, ticker.C) == 2
    ticker.stop()


def test_mock_ticker_multi():
    clock = new_mock()
    a = clock.ticker(US)
    b = clock.ticker(3 * US)
    n = 0
    for _ in range(10):
        clock.add(US)
        n += _drain(a.C) + 100 * _drain(b.C)
    assert n == 310


def test_example_after_func():
    clock = new_mock()
    count = [1]
    clock.after_func(10 * SEC, lambda: count.append(1))
    assert (str(clock.now()), len(count)) == ("1970-01-01 00:00:00+00:00", 1)
    clock.add(10 * SEC)
    assert (str(clock.now()), len(count)) == ("1970-01-01 00:00:10+00:00", 2)


def test_example_timer():
    clock = new_mock()
    timer = clock.timer(SEC)
    clock.add(10 * SEC)
    assert _drain(timer.C) == 1


def test_reentrant_stop_from_after_func():
    clock = new_mock()
    timer20 = clock.timer(20 * SEC)
    clock.after_func(10 * SEC, timer20.stop)
    clock.add(15 * SEC)
    clock.add(15 * SEC)
    assert timer20.C.empty()
    assert timer20.stop() is False


def test_after_race():
    clock = new_mock()
    received = []
    lock = threading.Lock()
    channels = [clock.after(MS) for _ in range(10)]

    def waiter(ch):
        value = ch.get(timeout=2)
        with lock:
            received.append(value)

    threads = [threading.Thread(target=waiter, args=(ch,), daemon=True) for ch in channels]
    for thread in threads:
        thread.start()
    clock.add(SEC)
    for thread in threads:
        thread.join(2)
    assert received == [_at(microseconds=1000)] * 10
    assert clock.now() == _at(1)


def test_wait_for_all_timers():
    clock = new_mock()
    first = clock.after(5 * SEC)
    second = clock.after(10 * SEC)
    assert clock.wait_for_all_timers() == _at(10)
    assert _drain(first) == 1
    assert _drain(second) == 1


def test_timer_stop_twice():
    clock = new_mock()
    timer = clock.timer(SEC)
    assert timer.stop() is True
    assert timer.stop() is False
    assert timer.reset(SEC) is False
    clock.add(SEC)
    assert _drain(timer.C) == 1


def test_clock_with_timeout_method():
    clock = new_mock()
    ctx, _ = clock.with_timeout(background(), SEC)
    clock.add(SEC)
    assert ctx.done().is_set()


def test_real_with_timeout():
    ctx, _ = new().with_timeout(background(), 10 * MS)
    assert ctx.done().wait(2)