from __future__ import annotations

from typing import NoReturn


class BaseCronifyError(Exception):
    pass


class InvalidPatternError(BaseCronifyError, ValueError):
    """Raised when a schedule expression is malformed or never matches."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern: str = pattern
        self.reason: str = reason
        super().__init__(f"Invalid cron pattern {pattern!r}: {reason}")


class StoreError(BaseCronifyError):
    """Raised when the job store fails to read or write."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation: str = operation
        self.reason: str = reason
        super().__init__(f"Store operation {operation!r} failed: {reason}")


class QueueError(BaseCronifyError):
    """Raised when a payload cannot be pushed onto the work queue."""

    def __init__(self, reason: str, *, job_name: str | None = None) -> None:
        self.job_name: str | None = job_name
        self.reason: str = reason
        if job_name is None:
            msg = f"Enqueue failed: {reason}"
        else:
            msg = f"Enqueue failed for job {job_name!r}: {reason}"
        super().__init__(msg)


class ApplicationStateError(BaseCronifyError):
    """Raised when the app is in the wrong state for an operation."""

    def __init__(
        self,
        *,
        operation: str,
        reason: str,
        solution: str,
    ) -> None:
        self.operation: str = operation
        self.reason: str = reason
        self.solution: str = solution

        msg = (
            f"Cannot perform operation '{operation}'.\n"
            f"  Reason: {reason}\n"
            f"  Resolution: {solution}"
        )
        super().__init__(msg)


def raise_app_not_started_error(operation: str) -> NoReturn:
    raise ApplicationStateError(
        operation=operation,
        reason="The Cronify application is not started.",
        solution=(
            "Ensure you are calling this method inside an 'async with "
            "cronify:' block or after calling 'await cronify.startup()'."
        ),
    )
