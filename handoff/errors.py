"""Exception types raised by the hand-off channel and its workers."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid construction-time parameter (capacity, worker counts, timeouts)."""


class WaitInterrupted(RuntimeError):
    """
    Raised from a blocking buffer call when the waiting thread was interrupted
    via :meth:`handoff.buffer.BoundedBuffer.interrupt`.

    The buffer is left untouched by the interrupted call.
    """
