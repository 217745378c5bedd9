"""
Collapse concurrent calls for the same key into one unit of work.

The first caller for a key runs the function; callers arriving while it is in
flight block on the same Future and receive the same result or exception.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Dict, Hashable, Optional, TypeVar

T = TypeVar("T")


class SingleFlight:
    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def do(self, key: Hashable, fn: Callable[[], T], timeout: Optional[float] = None) -> T:
        """Run fn once per key at a time.

        timeout only bounds how long a follower waits (concurrent.futures.TimeoutError);
        the leader's work keeps running and its result still lands wherever fn puts it.
        """
        with self._lock:
            fut = self._calls.get(key)
            leader = fut is None
            if leader:
                fut = Future()
                self._calls[key] = fut

        if not leader:
            return fut.result(timeout=timeout)

        try:
            result = fn()
        except BaseException as exc:
            fut.set_exception(exc)
            raise
        else:
            fut.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)
