from __future__ import annotations

import sys
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

_lock = threading.Lock()
_base_limit: Optional[int] = None
_requests: List[int] = []


@contextmanager
def recursion_headroom(frames: int) -> Iterator[None]:
    """Raise the interpreter recursion limit by ``frames`` while the block runs.

    Overlapping requests from several threads share one base limit, which is
    put back once the last of them exits.
    """
    global _base_limit
    if frames <= 0:
        yield
        return
    with _lock:
        if not _requests:
            _base_limit = sys.getrecursionlimit()
        _requests.append(frames)
        sys.setrecursionlimit(_base_limit + max(_requests))
    try:
        yield
    finally:
        with _lock:
            _requests.remove(frames)
            sys.setrecursionlimit(_base_limit + max(_requests, default=0))
            if not _requests:
                _base_limit = None


__all__ = ["recursion_headroom"]
