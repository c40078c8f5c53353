# fakeclock

A small clock abstraction for code that depends on time. Write your code
against a clock object and hand it either the real clock or a mock clock
that only moves when you move it.

- `fakeclock.clock.new()` returns a `RealClock` that follows the system's
  wall time.
- `fakeclock.clock.new_mock()` returns a `MockClock` that starts at the Unix
  epoch (`fakeclock.clock.EPOCH`, a UTC-aware `datetime`) and advances only
  through `add()` and `set()`.

Both are `fakeclock.clock.Clock` subclasses and provide the same operations:
`now`, `since`, `until`, `sleep`, `after`, `after_func`, `timer`, `ticker`,
`tick`, `with_deadline` and `with_timeout`. Times are timezone-aware
`datetime` values in UTC, and durations are `timedelta` values.

## Installation

From a checkout of the package:

```
pip install .
```

The package has no dependencies outside the standard library.

## Using the mock clock

```python
from datetime import timedelta

from fakeclock.clock import new_mock

clock = new_mock()
fired = []

clock.after_func(timedelta(seconds=10), lambda: fired.append(clock.now()))

clock.add(timedelta(seconds=9))
assert fired == []

clock.add(timedelta(seconds=1))
assert len(fired) == 1
```

When the clock moves forward, every timer and ticker that falls due is
fired in time order, and `now()` reports each one's due time while it is
being fired. All of this happens on the thread that calls `add()` or
`set()`; functions given to `after_func` run there too, once the clock's
lock has been released.

`sleep()` on a mock clock blocks until another thread moves the clock far
enough forward. `timer()` (and so `after()`) with a duration of zero or less
fires at once.

### Channels

`after()`, `tick()` and the `C` attribute of timers and tickers are
`queue.Queue` objects holding at most one time. A time that cannot be put
because the previous one was never read is dropped rather than blocking the
clock. A timer made by `after_func` has no queue: its `C` is `None`.

### Timers and tickers

```python
timer = clock.timer(timedelta(seconds=1))
timer.stop()                       # True if the timer was still pending
timer.reset(timedelta(seconds=5))  # re-arms it relative to clock.now()

ticker = clock.ticker(timedelta(seconds=1))
clock.add(timedelta(seconds=3))
ticker.stop()
ticker.reset(timedelta(seconds=2))  # restarts with a new interval from now
```

`Timer.reset()` returns `True` if the timer had not yet fired or been
stopped. `wait_for_all_timers()` moves the clock forward until no timers or
tickers are left registered and returns the time reached; a ticker that is
still running keeps it going, so stop tickers first.

The real clock's tickers run on a background thread; `ticker()`, `tick()`
and `Ticker.reset()` on a `RealClock` raise `ValueError` for an interval of
zero or less.

## Deadlines and cancellation

`fakeclock.context` provides cancellable contexts with deadlines measured
on any clock:

```python
from datetime import timedelta

from fakeclock.clock import new_mock
from fakeclock.context import DeadlineExceeded, background

clock = new_mock()
ctx, cancel = clock.with_timeout(background(), timedelta(seconds=1))

clock.add(timedelta(seconds=1))
assert ctx.done().is_set()
assert isinstance(ctx.err(), DeadlineExceeded)
```

- `background()` returns a root `Context` that is never cancelled and has no
  deadline or values.
- `with_cancel(parent)` returns a `CancelContext` and a function that
  cancels it with `Canceled`.
- `with_value(parent, key, value)` returns a child that answers
  `value(key)`.
- `with_deadline(clock, parent, deadline)` and
  `with_timeout(clock, parent, timeout)` return a `TimerContext` that is
  cancelled with `DeadlineExceeded` when the clock reaches the deadline,
  together with a cancel function. A deadline that has already passed
  cancels the context at once. If the parent's deadline is earlier, a plain
  `CancelContext` is returned instead.

`done()` returns a `threading.Event` that is set on cancellation, and
`err()` returns the `Canceled` or `DeadlineExceeded` instance that ended the
context; the first reason recorded wins. A child context ends when its
parent does, with the parent's reason.

## What it does not do

`fakeclock` is a library only: it has no command-line tool, and it does not
patch the `time` or `datetime` modules. Code under test must take its clock
as an argument.

## Running the tests

```
pip install -e ".[test]"
pytest
```