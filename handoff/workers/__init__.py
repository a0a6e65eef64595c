"""Thread worker roles that feed and drain the bounded buffer."""

from __future__ import annotations

from .base import Worker
from .producer import Producer
from .consumer import Consumer

__all__ = [
    "Worker",
    "Producer",
    "Consumer",
]
