from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from loguru import logger


@contextmanager
def timed(name: str) -> Iterator[None]:
    """Log how long the wrapped block took, at DEBUG level."""

    start = time.perf_counter()
    logger.debug("{name}.start", name=name)
    try:
        yield
    finally:
        logger.debug(
            "{name}.done elapsed={elapsed:.3f}s",
            name=name,
            elapsed=time.perf_counter() - start,
        )


def sanitize_filename(text: str, max_len: int = 20) -> str:
    """First ``max_len`` code points of ``text`` with every non-alphanumeric replaced by ``_``."""

    return "".join(ch if ch.isalnum() else "_" for ch in text[:max_len])
