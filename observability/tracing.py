"""Simple span helper for recording engine call timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator, List


@contextmanager
def span(timings: List[Dict[str, object]], name: str) -> Iterator[None]:
    start = time.monotonic()
    try:
        yield
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        timings.append({"span": name, "ms": elapsed_ms})


__all__ = ["span"]
