from __future__ import annotations

import re
from typing import (
    Any,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Union,
)

LAST_MODIFIED = "Last-Modified"
ETAG = "ETag"
EXPIRES = "Expires"
CACHE_CONTROL = "Cache-Control"

_WHITESPACE_RUN = re.compile(r"\s+")
_NAMESPACE_FORBIDDEN = re.compile(r"[^A-Za-z0-9_.\- ]")


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive header map.

    Assignment replaces every value stored under the name; use `add` to keep
    repeated fields.
    """

    def __init__(self, headers: Optional[Mapping[str, Union[str, List[str]]]] = None) -> None:
        self._headers = {k.lower(): ([v] if isinstance(v, str) else v[:]) for k, v in (headers or {}).items()}

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def add(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(value)

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers[key.lower()] = [value]

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return repr(self._headers)

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers


def sanitize_namespace(value: str) -> str:
    """
    Make a caller-defined namespace safe to embed in a Cache-Control directive.

    Whitespace runs collapse to a single space, then every character outside
    `[A-Za-z0-9_.- ]` is removed.

    Examples:
        >>> sanitize_namespace("José 0 _ 0 vaLim")
        'Jos 0 _ 0 vaLim'
        >>> sanitize_namespace("users\\t\\n42")
        'users 42'
    """
    return _NAMESPACE_FORBIDDEN.sub("", _WHITESPACE_RUN.sub(" ", value))


def compose_cache_control(
    headers: Mapping[str, str],
    namespace: Optional[str] = None,
    control: Optional[str] = None,
) -> Optional[str]:
    """
    Derive the outgoing Cache-Control value.

    The result depends only on whether a namespace or a control value is
    configured and on which validator headers ended up in `headers`.

    Parameters:
    ----------
    headers : Mapping[str, str]
        Headers computed so far. Only the presence of Last-Modified, ETag and
        Expires is inspected.
    namespace : Optional[str]
        Resolved namespace, or None when no namespace is configured. Takes
        precedence over `control`.
    control : Optional[str]
        Explicit control value, or None when not configured.

    Returns:
    -------
    Optional[str]
        The Cache-Control value, or None when the header must be omitted.

    Examples:
    --------
    >>> compose_cache_control({"Last-Modified": "Thu, 01 Jan 1970 00:00:00 GMT"})
    'private, max-age=0, must-revalidate'
    >>> compose_cache_control({"ETag": '"abc"'}, namespace="team a")
    'private=(team a), max-age=0, must-revalidate'
    >>> compose_cache_control({"Expires": "Wed, 01 Jan 2031 00:00:00 GMT"})
    'public'
    >>> compose_cache_control({}, control="public") is None
    True
    """
    if namespace is not None:
        base: Optional[str] = f"private=({sanitize_namespace(namespace)})"
    elif control is not None:
        base = control
    else:
        base = None

    present = {name.lower() for name in headers}

    if LAST_MODIFIED.lower() in present or ETAG.lower() in present:
        return f"{base or 'private'}, max-age=0, must-revalidate"
    if EXPIRES.lower() in present:
        return base or "public"
    return None
