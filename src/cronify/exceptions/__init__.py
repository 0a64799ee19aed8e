"""Custom exceptions for the cronify scheduler.

Pattern errors are raised synchronously by the calls that parse a
schedule expression. Store and queue errors come from the async
collaborators and reach either the awaiting caller or the `on_error`
callback of a running scheduler loop.
"""

from cronify._internal.exceptions import (
    ApplicationStateError,
    BaseCronifyError,
    InvalidPatternError,
    QueueError,
    StoreError,
)

__all__ = (
    "ApplicationStateError",
    "BaseCronifyError",
    "InvalidPatternError",
    "QueueError",
    "StoreError",
)
