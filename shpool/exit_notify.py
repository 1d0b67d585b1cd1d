"""A one-shot notification of a child process exit status."""

import threading


class ExitNotifier:
    """Lets any number of threads wait for a process exit status."""

    def __init__(self) -> None:
        self._status: int | None = None
        self._cond = threading.Condition()

    def notify_exit(self, status: int) -> None:
        """Record the exit status and wake all waiters."""
        with self._cond:
            self._status = status
            self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> int | None:
        """Wait for the exit status.

        Returns the status, or None if ``timeout`` seconds passed first.
        Returns immediately if the process has already exited.
        """
        with self._cond:
            if self._status is not None:
                return self._status
            self._cond.wait_for(lambda: self._status is not None, timeout)
            return self._status