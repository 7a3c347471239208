"""Cooperative cancellation for in-flight generation calls."""

from stylemixer.errors import GenerationCancelledError


class CancellationToken:
    """Flag checked by the services at each suspension point."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise GenerationCancelledError("Operation cancelled")
