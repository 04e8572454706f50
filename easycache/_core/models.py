from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import (
    Any,
    Callable,
    Iterable,
    Optional,
    Tuple,
    Union,
)

from easycache._core._headers import Headers


@dataclass(frozen=True)
class LiteralSource:
    """A validator that resolves to the configured value itself."""

    value: Any


@dataclass(frozen=True)
class FieldSource:
    """
    A validator read from the request-scoped subject.

    `name` is looked up on `RequestContext.subject` (attribute or mapping key,
    called when it is a method). When `accessor` is set and the resulting
    object exposes it, the value is taken from there instead.
    """

    name: str
    accessor: Optional[str] = None


@dataclass(frozen=True)
class ThunkSource:
    """A validator produced by a zero-argument callable."""

    source: Callable[[], Any]


@dataclass(frozen=True)
class CallbackSource:
    """A validator produced by a callable that receives the `RequestContext`."""

    source: Callable[["RequestContext"], Any]


ValidatorSpec = Union[LiteralSource, FieldSource, ThunkSource, CallbackSource]
Duration = Union[timedelta, int, float]

_SPEC_TYPES = (LiteralSource, FieldSource, ThunkSource, CallbackSource)


def _required_positional(source: Callable[..., Any]) -> int:
    try:
        signature = inspect.signature(source)
    except (TypeError, ValueError):
        return 0
    return sum(
        1
        for parameter in signature.parameters.values()
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD)
        and parameter.default is parameter.empty
    )


def as_spec(value: Any) -> ValidatorSpec:
    """
    Coerce a configuration value into a `ValidatorSpec`.

    Specs pass through unchanged. Callables become a `CallbackSource` when
    they require a positional argument and a `ThunkSource` otherwise. Anything
    else, strings included, becomes a `LiteralSource`.

    Examples:
    --------
    >>> as_spec("ETAG_CACHE")
    LiteralSource(value='ETAG_CACHE')
    >>> isinstance(as_spec(lambda: 1), ThunkSource)
    True
    >>> isinstance(as_spec(lambda context: 1), CallbackSource)
    True
    """
    if isinstance(value, _SPEC_TYPES):
        return value
    if callable(value) and not isinstance(value, type):
        if _required_positional(value) >= 1:
            return CallbackSource(value)
        return ThunkSource(value)
    return LiteralSource(value)


def _flatten(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(item for item in value if item is not None)
    return (value,)


def _methods(value: Union[str, Iterable[str], None]) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    return tuple(method.upper() for method in value)


@dataclass(frozen=True)
class CacheConfig:
    """
    Per-handler validator declarations.

    Built once when the handler is registered and never mutated afterwards.
    Use `CacheConfig.build` to construct one from loose values.
    """

    last_modified: Tuple[ValidatorSpec, ...] = ()
    etag: Tuple[ValidatorSpec, ...] = ()
    expires_at: Tuple[ValidatorSpec, ...] = ()
    expires_in: Tuple[Duration, ...] = ()
    control: Optional[ValidatorSpec] = None
    namespace: Optional[ValidatorSpec] = None
    accessor: Optional[str] = None
    """Secondary accessor applied to resolved objects before timestamp extraction."""
    supported_methods: Optional[Tuple[str, ...]] = None
    """Per-handler method gate, `("*",)` accepts every method. None defers to `CacheOptions`."""

    @classmethod
    def build(
        cls,
        *,
        last_modified: Any = None,
        etag: Any = None,
        expires_at: Any = None,
        expires_in: Union[Duration, Iterable[Duration], None] = None,
        control: Any = None,
        namespace: Any = None,
        accessor: Optional[str] = None,
        supported_methods: Union[str, Iterable[str], None] = None,
    ) -> "CacheConfig":
        """
        Build a config from single values or lists of values.

        `None` entries are discarded, so `last_modified=[a, None]` is the same
        as `last_modified=[a]`.

        Example:
            ```python
            config = CacheConfig.build(
                last_modified=[FieldSource("article"), lambda: site.updated_at],
                etag=lambda context: context.headers.get("accept-language"),
                expires_in=timedelta(minutes=10),
                namespace="users",
            )
            ```
        """
        return cls(
            last_modified=tuple(as_spec(item) for item in _flatten(last_modified)),
            etag=tuple(as_spec(item) for item in _flatten(etag)),
            expires_at=tuple(as_spec(item) for item in _flatten(expires_at)),
            expires_in=_flatten(expires_in),
            control=None if control is None else as_spec(control),
            namespace=None if namespace is None else as_spec(namespace),
            accessor=accessor,
            supported_methods=_methods(supported_methods),
        )

    @property
    def has_validators(self) -> bool:
        return bool(self.last_modified or self.etag or self.expires_at or self.expires_in)

    @property
    def evaluates_last_modified(self) -> bool:
        """Last-Modified is computed when declared, or when nothing at all is declared."""
        return bool(self.last_modified) or not self.has_validators


@dataclass(frozen=True)
class RequestContext:
    """
    Read-only view of the incoming request.

    The host builds one per request. `subject` is the object `FieldSource`
    validators read from (a controller, a request, a view model...).
    """

    method: str
    headers: Headers = field(default_factory=Headers)
    subject: Any = None
    is_subrequest: bool = False

    @property
    def if_modified_since(self) -> Optional[str]:
        return self.headers.get("if-modified-since")

    @property
    def if_none_match(self) -> Optional[str]:
        return self.headers.get("if-none-match")


@dataclass
class Validators:
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    time_evaluated: bool = False
    """Whether the Last-Modified family took part in this request."""


@dataclass
class Decision:
    not_modified: bool
    headers: Headers = field(default_factory=Headers)


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""
