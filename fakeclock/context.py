"""Cancellable contexts whose deadlines are driven by a clock."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Callable


class Canceled(Exception):
    """The context was cancelled explicitly or by its parent."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class DeadlineExceeded(Exception):
    """The context's deadline passed."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


class Context:
    """A root context: never cancelled, without deadline or values."""

    def deadline(self) -> datetime | None:
        """Return the time at which the context ends, or None."""
        return None

    def done(self) -> threading.Event | None:
        """Return an event set on cancellation, or None if never cancelled."""
        return None

    def err(self) -> Exception | None:
        """Return the reason for cancellation, or None while still active."""
        return None

    def value(self, key: Any) -> Any:
        """Return the value stored for key, or None."""
        return None

    def _on_cancel(self, callback: Callable[[Exception], None]) -> bool:
        """Arrange for callback to run on cancellation.

        Return False when the context can never be cancelled.
        """
        return False


class _ChildContext(Context):
    """A context that answers every question by asking its parent."""

    def __init__(self, parent: Context) -> None:
        self._parent = parent

    def deadline(self) -> datetime | None:
        return self._parent.deadline()

    def done(self) -> threading.Event | None:
        return self._parent.done()

    def err(self) -> Exception | None:
        return self._parent.err()

    def value(self, key: Any) -> Any:
        return self._parent.value(key)

    def _on_cancel(self, callback: Callable[[Exception], None]) -> bool:
        return self._parent._on_cancel(callback)


class _ValueContext(_ChildContext):
    def __init__(self, parent: Context, key: Any, val: Any) -> None:
        super().__init__(parent)
        self._key = key
        self._val = val

    def value(self, key: Any) -> Any:
        if key == self._key:
            return self._val
        return super().value(key)


class CancelContext(_ChildContext):
    """A context that can be cancelled, and is cancelled with its parent."""

    def __init__(self, parent: Context) -> None:
        super().__init__(parent)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: Exception | None = None
        self._callbacks: list[Callable[[Exception], None]] = []

    def done(self) -> threading.Event:
        return self._done

    def err(self) -> Exception | None:
        with self._lock:
            return self._err

    def cancel(self, err: Exception) -> None:
        """Cancel with the given reason; later calls have no effect."""
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            self._done.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(err)

    def _on_cancel(self, callback: Callable[[Exception], None]) -> bool:
        with self._lock:
            if self._err is None:
                self._callbacks.append(callback)
                return True
            err = self._err
        callback(err)
        return True


class TimerContext(CancelContext):
    """A context that is cancelled when its clock reaches a deadline."""

    def __init__(self, clock: Any, parent: Context, deadline: datetime) -> None:
        super().__init__(parent)
        self._clock = clock
        self._deadline = deadline
        self._timer: Any = None

    def deadline(self) -> datetime:
        return self._deadline

    def cancel(self, err: Exception) -> None:
        """Cancel with the given reason and stop the deadline timer."""
        super().cancel(err)
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.stop()

    def __str__(self) -> str:
        remaining = self._deadline - self._clock.now()
        return f"with_deadline({self._deadline} [{remaining}])"


def background() -> Context:
    """Return an empty root context."""
    return Context()


def with_cancel(parent: Context) -> tuple[CancelContext, Callable[[], None]]:
    """Return a child of parent and a function that cancels it."""
    ctx = CancelContext(parent)
    parent._on_cancel(ctx.cancel)
    return ctx, lambda: ctx.cancel(Canceled())


def with_value(parent: Context, key: Any, value: Any) -> Context:
    """Return a child of parent that carries key mapped to value."""
    return _ValueContext(parent, key, value)


def with_deadline(
    clock: Any, parent: Context, deadline: datetime
) -> tuple[Context, Callable[[], None]]:
    """Return a child of parent cancelled when clock reaches deadline."""
    current = parent.deadline()
    if current is not None and current < deadline:
        return with_cancel(parent)
    ctx = TimerContext(clock, parent, deadline)
    parent._on_cancel(ctx.cancel)
    cancel = lambda: ctx.cancel(Canceled())  # noqa: E731
    remaining = clock.until(deadline)
    if remaining <= timedelta(0):
        # Already expired: the first reason recorded wins, so cancel is inert.
        ctx.cancel(DeadlineExceeded())
        return ctx, cancel
    with ctx._lock:
        if ctx._err is None:
            ctx._timer = clock.after_func(
                remaining, lambda: ctx.cancel(DeadlineExceeded())
            )
    return ctx, cancel


def with_timeout(
    clock: Any, parent: Context, timeout: timedelta
) -> tuple[Context, Callable[[], None]]:
    """Return a child of parent cancelled after timeout on clock."""
    return with_deadline(clock, parent, clock.now() + timeout)