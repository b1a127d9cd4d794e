"""
cancellation.py - Cooperative cancellation
-----------------------------------------
A token shared by the orchestrator and the components it drives. Every
wait in a scrape goes through the token so a stop request is observed at
the next suspension point instead of by tearing the browser down underneath
a running operation.
"""
import threading


class ScrapeCancelled(Exception):
    """Raised when a scrape observes that its token was cancelled."""


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ScrapeCancelled("Session stopped by user")

    def sleep(self, seconds: float):
        """
        Wait for ``seconds`` unless cancelled first.

        Raises:
            ScrapeCancelled: if the token fires before or during the wait
        """
        self.raise_if_cancelled()
        if seconds > 0 and self._event.wait(seconds):
            raise ScrapeCancelled("Session stopped by user")
