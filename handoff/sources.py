"""Demo input sequences standing in for the upstream data collaborator."""

from __future__ import annotations

from typing import Any, List

from handoff.errors import ConfigurationError


def make_sources(producers: int, items_per_producer: int, sentinel: Any = None) -> List[List[int]]:
    """
    Return one list of distinct positive integers per producer.

    Producer ``i`` gets ``i*n+1 .. (i+1)*n``, so no value repeats across
    producers. Values equal to ``sentinel`` are rejected: the sentinel must
    lie outside the produced domain.
    """
    sources = [
        list(range(i * items_per_producer + 1, (i + 1) * items_per_producer + 1))
        for i in range(producers)
    ]
    if sentinel is not None and any(sentinel in s for s in sources):
        raise ConfigurationError(f"sentinel {sentinel!r} collides with generated input")
    return sources
