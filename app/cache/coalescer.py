"""
Single-flight execution keyed by string.

When several threads miss on the same key at once, only the first one runs
the work; the rest block until it finishes and receive the same result (or
the same exception).
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightCall:
    """Tracks one in-progress call and the threads waiting on it."""
    done: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    waiters: int = 0


class RequestCoalescer:
    """
    Collapse concurrent calls for the same key into one execution.

    Usage:
        coalescer = RequestCoalescer()
        averages = coalescer.get_or_fetch(
            "corners:1:23614",
            lambda: compute_corner_averages(...),
        )

    The in-flight record is dropped as soon as the initiator finishes, so a
    later call for the same key runs the work again. Results are not cached
    here; that is the TTL cache's job.
    """

    def __init__(self, timeout: float = 120.0):
        """
        Args:
            timeout: Max seconds a waiter blocks on someone else's call
        """
        self._in_flight: Dict[str, InFlightCall] = {}
        self._lock = threading.Lock()
        self._timeout = timeout
        self._coalesced = 0

    def get_or_fetch(self, key: str, fetch_fn: Callable[[], Any]) -> Any:
        """
        Run ``fetch_fn`` for ``key`` or join a call already running for it.

        Raises:
            TimeoutError: A waiter gave up on the initiator
            Exception: Whatever ``fetch_fn`` raised, re-raised in every caller
        """
        with self._lock:
            call = self._in_flight.get(key)
            if call is None:
                call = InFlightCall()
                self._in_flight[key] = call
                is_initiator = True
            else:
                call.waiters += 1
                self._coalesced += 1
                is_initiator = False

        if is_initiator:
            logger.debug(f"Initiating call for {key}")
            try:
                call.result = fetch_fn()
            except Exception as e:
                call.error = e
                logger.warning(f"Call failed for {key}: {e}")
            finally:
                with self._lock:
                    self._in_flight.pop(key, None)
                call.done.set()
        else:
            logger.debug(f"Joining in-flight call for {key} (waiters: {call.waiters})")
            if not call.done.wait(timeout=self._timeout):
                logger.error(f"Timeout waiting for in-flight call: {key}")
                raise TimeoutError(f"Call for {key} did not finish within {self._timeout}s")

        if call.error is not None:
            raise call.error
        return call.result

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        with self._lock:
            return {
                "active_calls": len(self._in_flight),
                "active_keys": list(self._in_flight.keys()),
                "coalesced": self._coalesced,
            }
