"""Real and mock clocks with timers, tickers and deadline contexts."""

from __future__ import annotations

import abc
import contextlib
import queue
import threading
import time as _time
from datetime import datetime, timedelta, timezone
from typing import Callable

from . import context as _ctx

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _offer(channel: queue.Queue, value: datetime) -> None:
    """Put value on channel unless it is full."""
    with contextlib.suppress(queue.Full):
        channel.put_nowait(value)


class Clock(abc.ABC):
    """The operations shared by real and mock clocks."""

    @abc.abstractmethod
    def after(self, d: timedelta) -> queue.Queue: ...

    @abc.abstractmethod
    def after_func(self, d: timedelta, f: Callable[[], None]) -> Timer: ...

    @abc.abstractmethod
    def now(self) -> datetime: ...

    @abc.abstractmethod
    def since(self, t: datetime) -> timedelta: ...

    @abc.abstractmethod
    def until(self, t: datetime) -> timedelta: ...

    @abc.abstractmethod
    def sleep(self, d: timedelta) -> None: ...

    @abc.abstractmethod
    def tick(self, d: timedelta) -> queue.Queue: ...

    @abc.abstractmethod
    def ticker(self, d: timedelta) -> Ticker: ...

    @abc.abstractmethod
    def timer(self, d: timedelta) -> Timer: ...

    @abc.abstractmethod
    def with_deadline(self, parent, deadline): ...

    @abc.abstractmethod
    def with_timeout(self, parent, timeout): ...


class Timer:
    """A single event; the time is put on C unless a function was given."""

    def __init__(self, fn: Callable[[], None] | None = None) -> None:
        self.C: queue.Queue | None = None if fn is not None else queue.Queue(maxsize=1)
        self._fn = fn
        self._mock: MockClock | None = None
        self._next = EPOCH
        self._stopped = False
        self._lock = threading.Lock()
        self._active = False
        self._generation = 0
        self._thread: threading.Timer | None = None

    @classmethod
    def _real(cls, d: timedelta, fn: Callable[[], None] | None = None) -> Timer:
        timer = cls(fn)
        with timer._lock:
            timer._start(d)
        return timer

    def _start(self, d: timedelta) -> None:
        self._active = True
        self._generation += 1
        thread = threading.Timer(
            max(0.0, d.total_seconds()), self._fire, args=(self._generation,)
        )
        thread.daemon = True
        self._thread = thread
        thread.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if not self._active or generation != self._generation:
                return
            self._active = False
        if self._fn is not None:
            self._fn()
        else:
            _offer(self.C, _utcnow())

    def _cancel_real(self) -> bool:
        was_active = self._active
        self._active = False
        if self._thread is not None:
            self._thread.cancel()
        return was_active

    def stop(self) -> bool:
        """Stop the timer; return True if it had not yet fired or stopped."""
        mock = self._mock
        if mock is None:
            with self._lock:
                return self._cancel_real()
        with mock._lock:
            registered = not self._stopped
            mock._remove(self)
            self._stopped = True
            return registered

    def reset(self, d: timedelta) -> bool:
        """Make the timer fire after d; return True if it was still active."""
        mock = self._mock
        if mock is None:
            with self._lock:
                was_active = self._cancel_real()
                self._start(d)
                return was_active
        with mock._lock:
            self._next = mock._now + d
            registered = not self._stopped
            if self._stopped:
                mock._timers.append(self)
            self._stopped = False
            return registered

    def _tick(self, now: datetime) -> None:
        mock = self._mock
        with mock._lock:
            if self._fn is None:
                _offer(self.C, now)
            mock._remove(self)
            self._stopped = True
        if self._fn is not None:
            self._fn()


class Ticker:
    """Puts the time on C at regular intervals, dropping ticks not read."""

    def __init__(self, d: timedelta) -> None:
        self.C: queue.Queue = queue.Queue(maxsize=1)
        self._d = d
        self._mock: MockClock | None = None
        self._next = EPOCH
        self._stopped = False
        self._cond = threading.Condition()
        self._running = False
        self._deadline = 0.0

    @staticmethod
    def _check_interval(d: timedelta) -> None:
        if d <= timedelta(0):
            raise ValueError("non-positive interval for ticker")

    @classmethod
    def _real(cls, d: timedelta) -> Ticker:
        cls._check_interval(d)
        ticker = cls(d)
        ticker._running = True
        ticker._deadline = _time.monotonic() + d.total_seconds()
        thread = threading.Thread(target=ticker._run, daemon=True)
        thread.start()
        return ticker

    def _run(self) -> None:
        with self._cond:
            while True:
                if not self._running:
                    self._cond.wait()
                    continue
                remaining = self._deadline - _time.monotonic()
                if remaining > 0:
                    self._cond.wait(remaining)
                    continue
                _offer(self.C, _utcnow())
                interval = self._d.total_seconds()
                self._deadline += interval
                current = _time.monotonic()
                if self._deadline <= current:
                    self._deadline = current + interval

    def stop(self) -> None:
        """Stop the ticker; no more ticks are sent until reset."""
        mock = self._mock
        if mock is None:
            with self._cond:
                self._running = False
                self._cond.notify_all()
            return
        with mock._lock:
            mock._remove(self)
            self._stopped = True

    def reset(self, d: timedelta) -> None:
        """Restart the ticker with interval d, counting from now."""
        mock = self._mock
        if mock is None:
            self._check_interval(d)
            with self._cond:
                self._d = d
                self._deadline = _time.monotonic() + d.total_seconds()
                self._running = True
                self._cond.notify_all()
            return
        with mock._lock:
            if self._stopped:
                mock._timers.append(self)
                self._stopped = False
            self._d = d
            self._next = mock._now + d

    def _tick(self, now: datetime) -> None:
        _offer(self.C, now)
        with self._mock._lock:
            self._next = now + self._d


class RealClock(Clock):
    """A clock that follows the system's wall time."""

    def after(self, d: timedelta) -> queue.Queue:
        """Return a queue that receives the time once d has elapsed."""
        return self.timer(d).C

    def after_func(self, d: timedelta, f: Callable[[], None]) -> Timer:
        return Timer._real(d, fn=f)

    def now(self) -> datetime:
        return _utcnow()

    def since(self, t: datetime) -> timedelta:
        """Return the time elapsed since t."""
        return self.now() - t

    def until(self, t: datetime) -> timedelta:
        """Return the time remaining until t."""
        return t - self.now()

    def sleep(self, d: timedelta) -> None:
        seconds = d.total_seconds()
        if seconds > 0:
            _time.sleep(seconds)

    def tick(self, d: timedelta) -> queue.Queue:
        """Return the queue of a ticker that is never stopped."""
        return self.ticker(d).C

    def ticker(self, d: timedelta) -> Ticker:
        return Ticker._real(d)

    def timer(self, d: timedelta) -> Timer:
        return Timer._real(d)

    def with_deadline(self, parent, deadline):
        """Return a child context cancelled when this clock reaches deadline."""
        return _ctx.with_deadline(self, parent, deadline)

    def with_timeout(self, parent, timeout):
        """Return a child context cancelled after timeout on this clock."""
        return _ctx.with_timeout(self, parent, timeout)


class MockClock(Clock):
    """A clock that moves only when told to; it starts at the Unix epoch.

    Timers fire, and functions given to after_func run, on the thread
    that calls add or set.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._now = EPOCH
        self._timers: list[Timer | Ticker] = []

    def add(self, d: timedelta) -> None:
        """Move the time forward by d, firing timers due on the way."""
        with self._lock:
            target = self._now + d
        self._advance_to(target)

    def set(self, t: datetime) -> None:
        """Move the time to t, firing timers due on the way."""
        self._advance_to(t)

    def _advance_to(self, target: datetime) -> None:
        while self._run_next_timer(target):
            pass
        with self._lock:
            self._now = target

    def wait_for_all_timers(self) -> datetime:
        """Advance until every timer has fired, and return the time reached."""
        while True:
            with self._lock:
                if not self._timers:
                    return self._now
                latest = max(timer._next for timer in self._timers)
            self.set(latest)

    def _run_next_timer(self, limit: datetime) -> bool:
        with self._lock:
            if not self._timers:
                return False
            first = min(self._timers, key=lambda timer: timer._next)
            if first._next > limit:
                return False
            self._now = first._next
            now = self._now
        first._tick(now)
        return True

    def _remove(self, target: Timer | Ticker) -> None:
        for index, timer in enumerate(self._timers):
            if timer is target:
                del self._timers[index]
                break

    def _schedule(self, item, d: timedelta):
        """Register item to fire d from now; the lock must be held."""
        item._mock = self
        item._next = self._now + d
        self._timers.append(item)
        return item

    def after(self, d: timedelta) -> queue.Queue:
        """Return a queue that receives the mock time once d has elapsed."""
        return self.timer(d).C

    def after_func(self, d: timedelta, f: Callable[[], None]) -> Timer:
        with self._lock:
            return self._schedule(Timer(fn=f), d)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def since(self, t: datetime) -> timedelta:
        """Return the mock time elapsed since t."""
        return self.now() - t

    def until(self, t: datetime) -> timedelta:
        """Return the mock time remaining until t."""
        return t - self.now()

    def sleep(self, d: timedelta) -> None:
        """Block until another thread moves the clock past d."""
        self.after(d).get()

    def tick(self, d: timedelta) -> queue.Queue:
        """Return the queue of a ticker that is never stopped."""
        return self.ticker(d).C

    def ticker(self, d: timedelta) -> Ticker:
        with self._lock:
            return self._schedule(Ticker(d), d)

    def timer(self, d: timedelta) -> Timer:
        with self._lock:
            timer = self._schedule(Timer(), d)
            now = self._now
        self._run_next_timer(now)
        return timer

    def with_deadline(self, parent, deadline):
        """Return a child context cancelled when this clock reaches deadline."""
        return _ctx.with_deadline(self, parent, deadline)

    def with_timeout(self, parent, timeout):
        """Return a child context cancelled after timeout on this clock."""
        return _ctx.with_timeout(self, parent, timeout)


def new() -> RealClock:
    """Return a clock that follows real time."""
    return RealClock()


def new_mock() -> MockClock:
    """Return a mock clock set to the Unix epoch."""
    return MockClock()