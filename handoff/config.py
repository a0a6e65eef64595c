"""Environment-based configuration loading for a hand-off run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from handoff.constants import DEFAULT_CAPACITY, DEFAULT_POLL_TIMEOUT, DEFAULT_SENTINEL
from handoff.errors import ConfigurationError


@dataclass
class Config:
    """Configuration values derived from environment variables."""
    # Buffer
    capacity: int

    # Workers
    producers: int
    consumers: int
    items_per_producer: int

    # Termination
    sentinel: int
    poll_timeout: float
    join_timeout: Optional[float]  # None = wait for workers indefinitely

    # Simulated per-item work
    produce_delay: float
    consume_delay: float

    def validate(self) -> "Config":
        """Raise :class:`ConfigurationError` on values no run could start with."""
        if self.capacity <= 0:
            raise ConfigurationError(f"capacity must be > 0, got {self.capacity}")
        if self.consumers <= 0:
            raise ConfigurationError(f"consumers must be > 0, got {self.consumers}")
        if self.producers < 0:
            raise ConfigurationError(f"producers must be >= 0, got {self.producers}")
        if self.items_per_producer < 0:
            raise ConfigurationError(
                f"items_per_producer must be >= 0, got {self.items_per_producer}")
        if self.poll_timeout <= 0:
            raise ConfigurationError(f"poll_timeout must be > 0, got {self.poll_timeout}")
        if self.join_timeout is not None and self.join_timeout <= 0:
            raise ConfigurationError(f"join_timeout must be > 0, got {self.join_timeout}")
        if self.produce_delay < 0 or self.consume_delay < 0:
            raise ConfigurationError("delays must be >= 0")
        return self


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


def initialize_environment() -> Config:
    """Load environment variables and build a validated :class:`Config`.

    A ``.env`` file in the working directory is honoured via
    :func:`dotenv.load_dotenv`; real environment variables take precedence.
    """
    load_dotenv(find_dotenv(usecwd=True))

    try:
        config = Config(
            capacity=int(os.getenv("HANDOFF_CAPACITY", str(DEFAULT_CAPACITY))),
            producers=int(os.getenv("HANDOFF_PRODUCERS", "1")),
            consumers=int(os.getenv("HANDOFF_CONSUMERS", "1")),
            items_per_producer=int(os.getenv("HANDOFF_ITEMS_PER_PRODUCER", "10")),
            sentinel=int(os.getenv("HANDOFF_SENTINEL", str(DEFAULT_SENTINEL))),
            poll_timeout=float(os.getenv("HANDOFF_POLL_TIMEOUT", str(DEFAULT_POLL_TIMEOUT))),
            join_timeout=_optional_float("HANDOFF_JOIN_TIMEOUT"),
            produce_delay=float(os.getenv("HANDOFF_PRODUCE_DELAY", "0")),
            consume_delay=float(os.getenv("HANDOFF_CONSUME_DELAY", "0")),
        )
    except ValueError as exc:
        raise ConfigurationError(f"invalid HANDOFF_* environment value: {exc}") from exc

    return config.validate()
