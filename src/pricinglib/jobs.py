"""
Cooperative cancellation and "latest request wins" execution.

Long-running calculations (deep lattices, large path counts) poll a
CancellationToken between units of work. LatestRequestRunner owns one token
per submitted request: submitting a new request cancels the previous token so
a stale calculation stops at its next checkpoint and its result is never
delivered.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from .exceptions import CalculationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise CalculationCancelled if cancel() has been called."""
        if self._event.is_set():
            raise CalculationCancelled("calculation superseded by a newer request")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Checkpoint helper accepting an optional token."""
    if token is not None:
        token.raise_if_cancelled()


class LatestRequestRunner:
    """
    Run pricing requests in the background, keeping only the newest.

    The callable must accept a ``cancel_token`` keyword argument. Each
    ``submit`` cancels the in-flight request; a superseded request's future
    raises CalculationCancelled even if its computation finished.

    Example:
        >>> runner = LatestRequestRunner()
        >>> fut = runner.submit(price_option, terms, PricingModel.MONTE_CARLO)
        >>> result = fut.result()
    """

    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="pricing")
        self._lock = threading.Lock()
        self._current: Optional[CancellationToken] = None
        self._generation = 0

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        token = CancellationToken()
        with self._lock:
            if self._current is not None:
                self._current.cancel()
            self._current = token
            self._generation += 1
            generation = self._generation

        def run():
            result = fn(*args, cancel_token=token, **kwargs)
            with self._lock:
                stale = generation != self._generation
            if stale or token.cancelled:
                logger.debug("Discarding result of superseded request %d", generation)
                raise CalculationCancelled("result superseded by a newer request")
            return result

        return self._executor.submit(run)

    def cancel(self) -> None:
        """Cancel the in-flight request, if any."""
        with self._lock:
            if self._current is not None:
                self._current.cancel()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "LatestRequestRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()


__all__ = [
    "CancellationToken",
    "check_cancelled",
    "LatestRequestRunner",
]
