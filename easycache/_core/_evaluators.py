from __future__ import annotations

import hashlib
import logging
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, List, Literal, Optional, Sequence

from typing_extensions import assert_never

from easycache._core._resolver import has_field, read_field, resolve_all
from easycache._core.models import CacheConfig, RequestContext, ValidatorSpec
from easycache._utils import partition

logger = logging.getLogger("easycache.core.evaluators")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UPDATED_FIELDS = ("updated_at", "updated_on")

SelectionMode = Literal["earliest_future", "latest"]
InvalidValidatorPolicy = Literal["drop", "poison"]


def _parse_time_string(value: str) -> Optional[datetime]:
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def as_instant(value: Any) -> Optional[datetime]:
    """
    Convert a directly time-like value to an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), dates (UTC midnight) and
    strings holding an HTTP date or an ISO 8601 timestamp. Anything else,
    numbers and booleans included, has no temporal interpretation.
    """
    if isinstance(value, str):
        parsed = _parse_time_string(value)
        if parsed is None:
            return None
        value = parsed

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    return None


def to_instant(value: Any, accessor: Optional[str] = None) -> Optional[datetime]:
    """
    Find the temporal interpretation of a resolved validator.

    The secondary `accessor`, when the value exposes it, is applied first.
    Then, in order of priority: the value itself when it is time-like, its
    `updated_at` field, its `updated_on` field.
    """
    if accessor is not None and value is not None and has_field(value, accessor):
        value = read_field(value, accessor)

    instant = as_instant(value)
    if instant is not None:
        return instant

    if value is None:
        return None

    for name in UPDATED_FIELDS:
        if has_field(value, name):
            return as_instant(read_field(value, name))
    return None


def select_time(
    values: Iterable[Any],
    mode: SelectionMode,
    now: datetime,
    accessor: Optional[str] = None,
    policy: InvalidValidatorPolicy = "drop",
) -> Optional[datetime]:
    """
    Pick one instant out of a sequence of resolved validators.

    Parameters:
    ----------
    values : Iterable[Any]
        Resolved validator values, in configuration order.
    mode : SelectionMode
        "latest" returns the maximum of every valid instant (Last-Modified).
        "earliest_future" ignores instants that are not strictly after `now`
        and returns the minimum of the rest (Expires).
    now : datetime
        Evaluation time, aware.
    accessor : Optional[str]
        Secondary accessor applied to each value before extraction.
    policy : InvalidValidatorPolicy
        "drop" ignores values without a temporal interpretation. "poison"
        makes the whole selection absent as soon as one such value exists.

    Returns:
    -------
    Optional[datetime]
        The selected UTC instant, or None when nothing qualifies.

    Examples:
    --------
    >>> now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> select_time([now - timedelta(hours=2), "garbage", now], "latest", now=now)
    datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    >>> select_time([now - timedelta(hours=2), "garbage"], "latest", now=now, policy="poison") is None
    True
    """
    instants = [to_instant(value, accessor) for value in values]
    valid, invalid = partition(instants, lambda instant: instant is not None)

    if invalid:
        if policy == "poison":
            logger.debug("Discarding time selection: %d validator(s) have no temporal meaning", len(invalid))
            return None
        logger.debug("Dropping %d validator(s) without temporal meaning", len(invalid))

    if mode == "latest":
        return max(valid) if valid else None  # type: ignore[type-var]
    elif mode == "earliest_future":
        future = [instant for instant in valid if instant > now]  # type: ignore[operator]
        return min(future) if future else None
    else:
        assert_never(mode)


def duration_to_instant(duration: Any, now: datetime) -> Optional[datetime]:
    """Durations that do not fit a datetime (inf, nan, 10**12 s...) have no instant."""
    try:
        if isinstance(duration, timedelta):
            return now + duration
        if isinstance(duration, (int, float)) and not isinstance(duration, bool):
            return now + timedelta(seconds=duration)
    except (OverflowError, ValueError):
        logger.debug("Ignoring expiration duration out of range: %r", duration)
    return None


def evaluate_last_modified(
    config: CacheConfig,
    context: RequestContext,
    now: datetime,
    policy: InvalidValidatorPolicy = "drop",
    defaults: Sequence[ValidatorSpec] = (),
) -> Optional[datetime]:
    """
    Compute the candidate Last-Modified instant for this request.

    Process-wide default validators come first, then the handler's own. A
    handler that declares no validator family at all gets the epoch as its
    only extra candidate, so it always exposes a stable baseline.
    """
    if not config.evaluates_last_modified:
        return None

    candidates: List[Any] = resolve_all([*defaults, *config.last_modified], context)
    if not config.has_validators:
        candidates.append(EPOCH)

    return select_time(candidates, "latest", now=now, accessor=config.accessor, policy=policy)


def digest_etag(parts: Iterable[str], algorithm: str = "md5") -> str:
    """
    Digest the etag basis into a quoted opaque tag.

    Every part is framed by its encoded length, so different sequences
    (`["ab", "c"]` and `["a", "bc"]`) never share a basis.
    """
    hasher = hashlib.new(algorithm, usedforsecurity=False)
    for part in parts:
        data = part.encode("utf-8")
        hasher.update(b"%d:" % len(data))
        hasher.update(data)
    return f'"{hasher.hexdigest()}"'


def evaluate_etag(
    config: CacheConfig,
    context: RequestContext,
    algorithm: str = "md5",
    cache_buster: Optional[str] = None,
) -> Optional[str]:
    """
    Compute the candidate ETag for this request.

    With a cache-busting token every tag changes when the token does, and
    handlers without etag sources still get a tag derived from the token.
    """
    if not config.etag and not cache_buster:
        return None

    parts: List[str] = [cache_buster] if cache_buster else []
    parts.extend("" if value is None else str(value) for value in resolve_all(config.etag, context))
    return digest_etag(parts, algorithm)


def evaluate_expires(
    config: CacheConfig,
    context: RequestContext,
    now: datetime,
    policy: InvalidValidatorPolicy = "drop",
) -> Optional[datetime]:
    """
    Merge absolute and relative expirations and keep the earliest future one.
    """
    if not (config.expires_at or config.expires_in):
        return None

    candidates: List[Any] = resolve_all(config.expires_at, context)
    candidates.extend(duration_to_instant(duration, now) for duration in config.expires_in)

    return select_time(candidates, "earliest_future", now=now, accessor=config.accessor, policy=policy)
