"""Real and mock clocks with timers, tickers and deadline contexts."""

__version__ = "0.1.0"
__all__ = ["clock", "context"]