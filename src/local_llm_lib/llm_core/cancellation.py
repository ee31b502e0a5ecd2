"""Thread-safe cancellation token shared between a request and its generation worker."""

import threading
from typing import Optional

from .exceptions import GenerationCancelledError
from .logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Signal used to request early termination of an in-progress generation call.

    Generation runs in a worker thread and polls the token between chunks, while
    tool handlers and the stream consumer cancel it from wherever they run.

    Example:
        token = CancellationToken()

        # In the generation thread
        for chunk in stream:
            if token.is_cancelled:
                break

        # Anywhere else
        token.cancel("tool-call-detected")

    Thread Safety:
        All methods are thread-safe and can be called from any thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation.

        Idempotent: only the first call records its reason.

        Args:
            reason: Distinguishing reason, e.g. ``"tool-call-detected"``.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
        logger.debug(f"Cancellation requested (reason={reason}).")

    @property
    def is_cancelled(self) -> bool:
        """True once ``cancel()`` has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """The reason given to the first ``cancel()`` call, if any."""
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise ``GenerationCancelledError`` if the token was cancelled.

        Raises:
            GenerationCancelledError: If ``cancel()`` has been called.
        """
        if self._event.is_set():
            raise GenerationCancelledError(reason=self._reason)
