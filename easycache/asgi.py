from __future__ import annotations

import logging
import typing as t

from easycache import CacheConfig, CacheOptions, Headers, RequestContext
from easycache._core._spec import (
    NOT_MODIFIED_STATUS_CODE,
    Evaluating,
    IdleRequest,
    NotModified,
    PassThrough,
)
from easycache._utils import HEADERS_ENCODING

# Configure logger for this module
logger = logging.getLogger(__name__)

SUBREQUEST_EXTENSION = "easycache.subrequest"


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]
_ASGIApp = t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]


def is_subrequest_scope(scope: t.Mapping[str, t.Any]) -> bool:
    """
    Whether the host marked this scope as a nested/component render.

    Hosts set `scope["extensions"]["easycache.subrequest"] = True` before
    dispatching an inner request.
    """
    extensions = scope.get("extensions") or {}
    return bool(extensions.get(SUBREQUEST_EXTENSION, False))


def merge_headers(raw_headers: t.Iterable[tuple[bytes, bytes]], headers: Headers) -> list[tuple[bytes, bytes]]:
    """Replace every field named in `headers`, keep the rest in order."""
    replaced = {name.lower() for name in headers}
    merged = [(key, value) for key, value in raw_headers if key.decode(HEADERS_ENCODING).lower() not in replaced]
    merged.extend((name.encode(HEADERS_ENCODING), value.encode(HEADERS_ENCODING)) for name, value in headers.items())
    return merged


def send_with_cache_headers(
    send: _Send,
    pass_through: t.Callable[[], PassThrough | None],
    method: str,
    path: str,
) -> _Send:
    """
    Wrap `send` so `http.response.start` carries the cache headers.

    `pass_through` is looked up when the response starts, once the final
    status code is known. Errors raised while computing the headers are
    logged and re-raised.
    """

    async def inner_send(message: dict[str, t.Any]) -> None:
        if message["type"] == "http.response.start":
            state = pass_through()
            if state is not None:
                status = message["status"]
                try:
                    decision = state.next(status)
                except Exception as e:
                    logger.error(
                        "Error computing cache headers: method=%s path=%s status=%d error=%s",
                        method,
                        path,
                        status,
                        str(e),
                        exc_info=True,
                    )
                    raise
                logger.debug(
                    "Application response started: status=%d cache_headers=%d",
                    status,
                    len(decision.headers),
                )
                if decision.headers:
                    message = {**message, "headers": merge_headers(message.get("headers", []), decision.headers)}
        await send(message)

    return inner_send


class ConditionalCacheMiddleware:
    """
    ASGI middleware that answers conditional requests for one handler.

    Before the wrapped application runs, the declared validators are
    evaluated against `If-Modified-Since` and `If-None-Match`. A match is
    answered with `304 Not Modified` without calling the application.
    Otherwise the application runs and, when it answers `200`, the
    Last-Modified, ETag, Expires and Cache-Control headers are merged into
    its response.

    Args:
        app: The ASGI application to wrap.
        config: Validators declared for the application.
        options: Engine-wide options. Defaults to `CacheOptions()`.
        condition: Host predicate guard. When it returns False for a scope the
            request passes through untouched.
        subject: Builds the object `FieldSource` validators read from.
            Defaults to the scope itself.

    Example:
        ```python
        from datetime import timedelta

        from easycache import CacheConfig
        from easycache.asgi import ConditionalCacheMiddleware

        app = ConditionalCacheMiddleware(
            app=my_asgi_app,
            config=CacheConfig.build(
                last_modified=lambda: articles.latest_change(),
                expires_in=timedelta(minutes=10),
            ),
        )
        ```
    """

    def __init__(
        self,
        app: _ASGIApp,
        config: CacheConfig,
        options: CacheOptions | None = None,
        condition: t.Callable[[_Scope], bool] | None = None,
        subject: t.Callable[[_Scope], t.Any] | None = None,
    ) -> None:
        self.app = app
        self.config = config
        self.options = options if options is not None else CacheOptions()
        self.condition = condition
        self.subject = subject

        logger.info(
            "Initialized ConditionalCacheMiddleware with config=%s, options=%s",
            config,
            self.options,
        )

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        """
        Handle an ASGI request.

        Args:
            scope: The ASGI scope dictionary.
            receive: The ASGI receive callable.
            send: The ASGI send callable.
        """
        # Only handle HTTP requests
        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")

        if self.condition is not None and not self.condition(scope):
            logger.debug("Condition rejected request: method=%s path=%s", method, path)
            await self.app(scope, receive, send)
            return

        logger.debug("Incoming HTTP request: method=%s path=%s", method, path)

        try:
            context = self._asgi_to_context(scope)
            state = IdleRequest(options=self.options, config=self.config).next(context)
            decided = state.next() if isinstance(state, Evaluating) else state
        except Exception as e:
            logger.error(
                "Error evaluating validators: method=%s path=%s error=%s",
                method,
                path,
                str(e),
                exc_info=True,
            )
            raise

        if isinstance(decided, NotModified):
            logger.info("Request not modified: method=%s path=%s", method, path)
            await self._send_not_modified(decided, send)
            return

        await self._call_app(decided, scope, receive, send)

    def _asgi_to_context(self, scope: _Scope) -> RequestContext:
        headers = Headers()
        for key, value in scope.get("headers", []):
            headers.add(key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING))

        return RequestContext(
            method=scope.get("method", "GET"),
            headers=headers,
            subject=self.subject(scope) if self.subject is not None else scope,
            is_subrequest=is_subrequest_scope(scope),
        )

    async def _send_not_modified(self, state: NotModified, send: _Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": NOT_MODIFIED_STATUS_CODE,
                "headers": merge_headers([], state.decision.headers),
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": b"",
                "more_body": False,
            }
        )

    async def _call_app(self, state: PassThrough, scope: _Scope, receive: _Receive, send: _Send) -> None:
        inner_send = send_with_cache_headers(
            send,
            lambda: state,
            method=scope.get("method", "UNKNOWN"),
            path=scope.get("path", "/"),
        )
        await self.app(scope, receive, inner_send)
