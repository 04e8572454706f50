from __future__ import annotations

import calendar
import typing as tp
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_tz

HEADERS_ENCODING = "iso-8859-1"

T = tp.TypeVar("T")


class BaseClock:
    def now(self) -> datetime:
        raise NotImplementedError()


class Clock(BaseClock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def parse_date(date: str) -> tp.Optional[int]:
    """
    Parse an HTTP date into a POSIX timestamp with one-second granularity.

    Returns None for values that are not a valid HTTP date.
    """
    parsed = parsedate_tz(date)
    if parsed is None:
        return None
    try:
        timestamp = calendar.timegm(parsed[:6])
    except (OverflowError, ValueError):
        return None
    return timestamp - (parsed[9] or 0)


def format_http_date(moment: datetime) -> str:
    """
    Format an aware datetime the way HTTP headers expect it.

    Example output: 'Sun, 26 Oct 2025 12:34:56 GMT'
    """
    return formatdate(timeval=moment.timestamp(), localtime=False, usegmt=True)


def partition(iterable: tp.Iterable[T], predicate: tp.Callable[[T], bool]) -> tp.Tuple[tp.List[T], tp.List[T]]:
    """
    Partition an iterable into two lists: one for matching items and one for non-matching items.

    Example:
        ```
        iterable = [1, 2, 3, 4, 5]
        is_even = lambda x: x % 2 == 0
        evens, odds = partition(iterable, is_even)
        ```
    """
    matching, non_matching = [], []
    for item in iterable:
        if predicate(item):
            matching.append(item)
        else:
            non_matching.append(item)
    return matching, non_matching

