"""Cron Parser implementation."""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Final

from crontab import CronTab as _CronTab
from typing_extensions import override

from cronify._internal.clock import to_datetime, to_timestamp
from cronify._internal.cron_parser import CronParser
from cronify._internal.exceptions import InvalidPatternError

if TYPE_CHECKING:
    from cronify._internal.common.types import Timestamp
    from cronify._internal.cron_parser import CronFactory

FIELDS_COUNT: Final = 6
DAY_OF_MONTH: Final = 3
MONTH: Final = 4
DAY_OF_WEEK: Final = 5
ANY: Final = "*"
# Feb 29 is a valid literal date.
_LEAP_YEAR: Final = 2000


def split_fields(expression: str) -> list[str]:
    """Split a six-field expression, accepting the classic five fields.

    Five-field expressions run at second zero. `?` is an alias for `*`.
    """
    fields = expression.split()
    if len(fields) == FIELDS_COUNT - 1:
        fields.insert(0, "0")
    if len(fields) != FIELDS_COUNT:
        reason = (
            "expected 6 fields (seconds minutes hours day-of-month "
            f"month day-of-week), got {len(fields)}"
        )
        raise InvalidPatternError(expression, reason)
    return [ANY if field == "?" else field for field in fields]


def _literals(field: str) -> list[int] | None:
    parts = field.split(",")
    if not all(part.isdigit() for part in parts):
        return None
    return [int(part) for part in parts]


def _ensure_satisfiable(expression: str, fields: list[str]) -> None:
    if fields[DAY_OF_WEEK] != ANY:
        return
    days = _literals(fields[DAY_OF_MONTH])
    months = _literals(fields[MONTH])
    if days is None or months is None:
        return
    for month in months:
        if not 1 <= month <= 12:  # noqa: PLR2004
            return
        last_day = calendar.monthrange(_LEAP_YEAR, month)[1]
        if any(1 <= day <= last_day for day in days):
            return
    reason = "day-of-month never occurs in the given month(s)"
    raise InvalidPatternError(expression, reason)


class CronTab(CronParser):
    """Cron expression parser based on the `crontab` library.

    When both day-of-month and day-of-week are restricted the expression
    matches on either of them, so it is evaluated as two schedules and
    the earliest occurrence wins.
    """

    __slots__: tuple[str, ...] = ("_entries", "expression")

    def __init__(self, expression: str) -> None:
        """Initialize a CronTab parser.

        Args:
            expression: A six-field cron expression.

        Raises:
            InvalidPatternError: The expression cannot be parsed or can
                never match.

        """
        fields = split_fields(expression)
        _ensure_satisfiable(expression, fields)
        variants = [fields]
        if fields[DAY_OF_MONTH] != ANY and fields[DAY_OF_WEEK] != ANY:
            by_day = fields.copy()
            by_day[DAY_OF_WEEK] = ANY
            by_weekday = fields.copy()
            by_weekday[DAY_OF_MONTH] = ANY
            variants = [by_day, by_weekday]
        try:
            # The library reads seven fields: seconds first, year last.
            entries = tuple(
                _CronTab(" ".join((*variant, ANY))) for variant in variants
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidPatternError(expression, str(exc)) from exc
        self.expression: Final = expression
        self._entries: Final = entries

    @override
    def next_run(self, *, now: datetime) -> datetime:
        """Compute the next scheduled execution time.

        Args:
            now: Reference datetime, naive values are read as UTC.

        Returns:
            The earliest matching datetime strictly after `now`.

        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        candidates = [
            future
            for entry in self._entries
            if (future := self._next(entry, now)) is not None
        ]
        if not candidates:
            raise InvalidPatternError(self.expression, "never matches")
        return min(candidates)

    @staticmethod
    def _next(entry: _CronTab, now: datetime) -> datetime | None:
        future: datetime | None = entry.next(now=now, return_datetime=True)  # pyright: ignore[reportUnknownMemberType]
        if future is None:
            return None
        if future.tzinfo is None:
            future = future.replace(tzinfo=now.tzinfo)
        return future


def create_crontab(expression: str) -> CronTab:
    """Create a CronTab instance.

    Args:
        expression: A cron expression.

    Returns:
        A new CronTab instance.

    """
    return CronTab(expression)


def next_occurrence(
    pattern: str,
    after: Timestamp,
    cron_factory: CronFactory = create_crontab,
) -> Timestamp:
    """Return the first occurrence of `pattern` strictly after `after`.

    Pure and deterministic, so every scheduler instance computes the same
    `next_run` for the same job.

    Args:
        pattern: A cron expression.
        after: Reference time in epoch milliseconds.
        cron_factory: Parser factory used to evaluate the pattern.

    Returns:
        The next occurrence in epoch milliseconds.

    """
    parser = cron_factory(pattern)
    return to_timestamp(parser.next_run(now=to_datetime(after)))
