from __future__ import annotations

import logging
import typing as t

from easycache import CacheConfig, CacheOptions, ConfigurationError, Headers, RequestContext
from easycache._core._spec import NOT_MODIFIED_STATUS_CODE, Evaluating, IdleRequest, NotModified, PassThrough
from easycache.asgi import _Receive, _Scope, _Send, is_subrequest_scope, send_with_cache_headers

try:
    import fastapi
except ImportError as e:
    raise ImportError(
        "fastapi is required to use easycache.fastapi module. "
        "Please install easycache with the 'fastapi' extra, "
        "e.g., 'pip install easycache[fastapi]'."
    ) from e

logger = logging.getLogger(__name__)

# Key in the per-request `scope["state"]` shared by the middleware and the dependency.
PASS_THROUGH_STATE = "easycache.pass_through"


class ConditionalCacheHeadersMiddleware:
    """
    Adds the headers computed by `conditional_cache` once the response starts.

    The dependency runs before the endpoint, so the final status code is not
    known yet. It leaves its decision in the request state and this
    middleware attaches the headers only when the response actually starts
    with `200`. Endpoints that change `response.status_code`, return their
    own `Response` or raise get no cache headers.

    Example:
        ```python
        from fastapi import FastAPI

        from easycache.fastapi import ConditionalCacheHeadersMiddleware

        app = FastAPI()
        app.add_middleware(ConditionalCacheHeadersMiddleware)
        ```
    """

    def __init__(self, app: t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]) -> None:
        self.app = app

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_state = scope.setdefault("state", {})
        request_state[PASS_THROUGH_STATE] = None

        inner_send = send_with_cache_headers(
            send,
            lambda: request_state.get(PASS_THROUGH_STATE),
            method=scope.get("method", "UNKNOWN"),
            path=scope.get("path", "/"),
        )
        await self.app(scope, receive, inner_send)


def conditional_cache(
    *,
    last_modified: t.Any = None,
    etag: t.Any = None,
    expires_at: t.Any = None,
    expires_in: t.Any = None,
    control: t.Any = None,
    namespace: t.Any = None,
    method: str | None = None,
    supported_methods: str | t.Iterable[str] | None = None,
    options: CacheOptions | None = None,
    subject: t.Callable[[fastapi.Request], t.Any] | None = None,
) -> t.Any:
    """
    Answer conditional requests for a FastAPI endpoint.

    Requires `ConditionalCacheHeadersMiddleware` on the application.

    Args:
        last_modified: Sources of the Last-Modified instant. The latest valid
            one wins. When no validator is declared at all, the epoch is used.
            Example: last_modified=lambda: article.updated_at

        etag: Sources digested into the ETag, in order.
            Example: etag=lambda context: context.headers.get("accept-language")

        expires_at: Absolute expiration instants. Past ones are ignored.

        expires_in: Expiration durations (timedelta or seconds) counted from
            the time of the request. The earliest future candidate among
            expires_at and expires_in becomes the Expires header.

        control: Base Cache-Control value, e.g. "public".

        namespace: Scopes cache visibility with `private=(<namespace>)`.
            Takes precedence over control.

        method: Secondary accessor applied to resolved objects before their
            timestamp is extracted (e.g. "cached_at"). Objects without it fall
            back to `updated_at` / `updated_on`.

        supported_methods: Methods this endpoint evaluates validators for
            ("*" for all). Defaults to `options.supported_methods`.

        options: Engine-wide options. Defaults to `CacheOptions()`.

        subject: Builds the object `FieldSource` validators read from.
            Defaults to the incoming `fastapi.Request`.

    Returns:
        A dependency that raises a `304 Not Modified` when the request
        validators match, and otherwise schedules the cache headers for a
        successful response.

    Examples:
        >>> from fastapi import FastAPI
        >>> from easycache.fastapi import ConditionalCacheHeadersMiddleware, conditional_cache
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(ConditionalCacheHeadersMiddleware)
        >>>
        >>> @app.get("/articles/{article_id}")
        >>> async def get_article(
        ...     article_id: int,
        ...     _: None = conditional_cache(last_modified=lambda: store.last_change()),
        ... ):
        ...     return store.get(article_id)

    Notes:
        - Headers are added only when the response starts with status 200.
        - Validators run before the endpoint, in FastAPI's dependency
          threadpool, so blocking sources are fine.
    """
    config = CacheConfig.build(
        last_modified=last_modified,
        etag=etag,
        expires_at=expires_at,
        expires_in=expires_in,
        control=control,
        namespace=namespace,
        accessor=method,
        supported_methods=supported_methods,
    )
    engine_options = options if options is not None else CacheOptions()

    def apply_conditional_cache(request: fastapi.Request) -> None:
        """Short-circuit, or leave the pass-through decision for the middleware."""
        request_state = request.scope.get("state")
        if request_state is None or PASS_THROUGH_STATE not in request_state:
            raise ConfigurationError(
                "conditional_cache requires ConditionalCacheHeadersMiddleware, "
                "e.g. `app.add_middleware(ConditionalCacheHeadersMiddleware)`"
            )

        context = RequestContext(
            method=request.method,
            headers=Headers({key: value for key, value in request.headers.items()}),
            subject=subject(request) if subject is not None else request,
            is_subrequest=is_subrequest_scope(request.scope),
        )

        try:
            state = IdleRequest(options=engine_options, config=config).next(context)
            decided: NotModified | PassThrough = state.next() if isinstance(state, Evaluating) else state
        except Exception as e:
            logger.error(
                "Error evaluating validators: method=%s path=%s error=%s",
                request.method,
                request.url.path,
                str(e),
                exc_info=True,
            )
            raise

        if isinstance(decided, NotModified):
            logger.debug("Request not modified: method=%s path=%s", request.method, request.url.path)
            raise fastapi.HTTPException(
                status_code=NOT_MODIFIED_STATUS_CODE,
                headers=dict(decided.decision.headers.items()),
            )

        request_state[PASS_THROUGH_STATE] = decided

    return fastapi.Depends(apply_conditional_cache)
