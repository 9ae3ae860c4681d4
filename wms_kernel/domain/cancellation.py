"""
Cooperative cancellation for amend/void pipelines.

A request handler hands a ``CancellationToken`` to the command service.
The pipeline checks it between stages and immediately before commit; a
cancelled token raises ``OperationCancelledError``, the unit of work rolls
back, and nothing performed so far is persisted.  There is no preemption:
a stage that has started runs to its next checkpoint.
"""

import threading

from wms_kernel.exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise OperationCancelledError(stage)


class _NeverCancelled(CancellationToken):
    def cancel(self) -> None:
        raise RuntimeError("NEVER_CANCELLED cannot be cancelled")


# Shared default for callers that do not supply a token.
NEVER_CANCELLED: CancellationToken = _NeverCancelled()
