from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from inline_snapshot import snapshot
from time_machine import travel

from easycache import CacheConfig, CacheOptions, FieldSource, Headers
from easycache._core._evaluators import digest_etag
from easycache._utils import format_http_date
from easycache.asgi import (
    SUBREQUEST_EXTENSION,
    ConditionalCacheMiddleware,
    _ASGIScope,
    is_subrequest_scope,
    merge_headers,
)
from tests.conftest import NOW

LAST_CHANGE = NOW - timedelta(hours=2)


class App:
    """ASGI app that answers with a fixed status and counts its calls."""

    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.calls = 0

    async def __call__(self, scope: _ASGIScope, receive: Any, send: Any) -> None:
        self.calls += 1
        await send(
            {
                "type": "http.response.start",
                "status": self.status,
                "headers": [
                    (b"content-type", b"text/plain"),
                    (b"cache-control", b"no-store"),
                    (b"content-length", b"13"),
                ],
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": b"Hello, World!",
                "more_body": False,
            }
        )


def create_asgi_scope(
    method: str = "GET",
    path: str = "/",
    headers: list[tuple[bytes, bytes]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> _ASGIScope:
    """Create a basic ASGI HTTP scope dictionary."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "https",
        "path": path,
        "query_string": b"",
        "root_path": "",
        "headers": headers or [],
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 8000),
        "state": {},
        "extensions": extensions or {},
    }


async def simple_receive() -> dict[str, Any]:
    return {"type": "http.disconnect"}


class ResponseCollector:
    """Collect response data from ASGI send calls."""

    def __init__(self) -> None:
        self.status: int = 0
        self.headers: list[tuple[bytes, bytes]] = []
        self.body_chunks: list[bytes] = []

    async def send(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
            self.headers = message.get("headers", [])
        elif message["type"] == "http.response.body":
            body = message.get("body", b"")
            if body:
                self.body_chunks.append(body)

    def get_body(self) -> bytes:
        return b"".join(self.body_chunks)

    def get_header(self, name: bytes) -> bytes | None:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def test_merge_headers():
    raw = [(b"Content-Type", b"text/plain"), (b"Cache-Control", b"no-store"), (b"Vary", b"Accept")]
    headers = Headers({"Cache-Control": "public", "Expires": "Thu, 01 Jan 1970 00:00:00 GMT"})

    assert merge_headers(raw, headers) == [
        (b"Content-Type", b"text/plain"),
        (b"Vary", b"Accept"),
        (b"cache-control", b"public"),
        (b"expires", b"Thu, 01 Jan 1970 00:00:00 GMT"),
    ]


def test_is_subrequest_scope():
    assert is_subrequest_scope(create_asgi_scope()) is False
    assert is_subrequest_scope(create_asgi_scope(extensions={SUBREQUEST_EXTENSION: True})) is True
    assert is_subrequest_scope({"type": "http"}) is False


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_successful_response_gets_headers(caplog: pytest.LogCaptureFixture) -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(last_modified=LAST_CHANGE))
    collector = ResponseCollector()

    with caplog.at_level("DEBUG", logger="easycache.asgi"):
        await middleware(create_asgi_scope(), simple_receive, collector.send)

    assert collector.status == 200
    assert collector.get_body() == b"Hello, World!"
    assert collector.get_header(b"last-modified") == format_http_date(LAST_CHANGE).encode()
    assert collector.get_header(b"cache-control") == b"private, max-age=0, must-revalidate"
    assert collector.get_header(b"content-type") == b"text/plain"
    assert [record.getMessage() for record in caplog.records if record.name == "easycache.asgi"] == snapshot(
        [
            "Incoming HTTP request: method=GET path=/",
            "Application response started: status=200 cache_headers=2",
        ]
    )


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_not_modified(caplog: pytest.LogCaptureFixture) -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(last_modified=LAST_CHANGE))
    collector = ResponseCollector()
    scope = create_asgi_scope(
        headers=[(b"if-modified-since", format_http_date(NOW - timedelta(hours=1)).encode())],
    )

    with caplog.at_level("DEBUG", logger="easycache.asgi"):
        await middleware(scope, simple_receive, collector.send)

    assert app.calls == 0
    assert collector.status == 304
    assert collector.get_body() == b""
    assert collector.get_header(b"last-modified") == format_http_date(LAST_CHANGE).encode()
    assert collector.get_header(b"expires") is None
    assert [record.getMessage() for record in caplog.records if record.name == "easycache.asgi"] == snapshot(
        [
            "Incoming HTTP request: method=GET path=/",
            "Request not modified: method=GET path=/",
        ]
    )


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_etag_match() -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(etag="v1", control="public"))
    collector = ResponseCollector()
    scope = create_asgi_scope(headers=[(b"if-none-match", digest_etag(["v1"]).encode())])

    await middleware(scope, simple_receive, collector.send)

    assert app.calls == 0
    assert collector.status == 304
    assert collector.get_header(b"etag") == digest_etag(["v1"]).encode()
    assert collector.get_header(b"cache-control") == b"public, max-age=0, must-revalidate"


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_error_response_is_untouched() -> None:
    middleware = ConditionalCacheMiddleware(app=App(500), config=CacheConfig.build(expires_in=timedelta(minutes=5)))
    collector = ResponseCollector()

    await middleware(create_asgi_scope(), simple_receive, collector.send)

    assert collector.status == 500
    assert collector.get_header(b"expires") is None
    assert collector.get_header(b"cache-control") == b"no-store"


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_subrequest_is_untouched() -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(last_modified=LAST_CHANGE))
    collector = ResponseCollector()
    scope = create_asgi_scope(
        headers=[(b"if-modified-since", format_http_date(NOW).encode())],
        extensions={SUBREQUEST_EXTENSION: True},
    )

    await middleware(scope, simple_receive, collector.send)

    assert app.calls == 1
    assert collector.status == 200
    assert collector.get_header(b"last-modified") is None


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_condition_rejects_request() -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(
        app=app,
        config=CacheConfig(),
        condition=lambda scope: scope["path"].startswith("/articles"),
    )
    collector = ResponseCollector()

    await middleware(
        create_asgi_scope(path="/admin", headers=[(b"if-modified-since", format_http_date(NOW).encode())]),
        simple_receive,
        collector.send,
    )

    assert app.calls == 1
    assert collector.status == 200
    assert collector.get_header(b"last-modified") is None


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_unsupported_method() -> None:
    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig())
    collector = ResponseCollector()

    await middleware(create_asgi_scope(method="POST"), simple_receive, collector.send)

    assert app.calls == 1
    assert collector.get_header(b"last-modified") is None


@pytest.mark.anyio
@travel(NOW, tick=False)
async def test_subject_feeds_field_sources() -> None:
    articles = {"/articles/1": {"updated_at": LAST_CHANGE}}
    middleware = ConditionalCacheMiddleware(
        app=App(),
        config=CacheConfig.build(last_modified=FieldSource("article")),
        options=CacheOptions(cache_buster="deploy-1"),
        subject=lambda scope: {"article": articles[scope["path"]]},
    )
    collector = ResponseCollector()

    await middleware(create_asgi_scope(path="/articles/1"), simple_receive, collector.send)

    assert collector.get_header(b"last-modified") == format_http_date(LAST_CHANGE).encode()
    assert collector.get_header(b"etag") == digest_etag(["deploy-1"]).encode()


@pytest.mark.anyio
async def test_non_http_scope_passes_through() -> None:
    calls = []

    async def app(scope: Any, receive: Any, send: Any) -> None:
        calls.append(scope["type"])

    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig())
    await middleware({"type": "lifespan"}, simple_receive, ResponseCollector().send)  # type: ignore[typeddict-item]

    assert calls == ["lifespan"]


@pytest.mark.anyio
async def test_resolution_errors_are_logged_and_raised(caplog: pytest.LogCaptureFixture) -> None:
    def broken() -> Any:
        raise RuntimeError("database is down")

    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(last_modified=broken))

    with caplog.at_level("ERROR", logger="easycache.asgi"), pytest.raises(RuntimeError, match="database is down"):
        await middleware(create_asgi_scope(), simple_receive, ResponseCollector().send)

    assert app.calls == 0
    assert caplog.records[-1].getMessage() == snapshot(
        "Error evaluating validators: method=GET path=/ error=database is down"
    )


@pytest.mark.anyio
async def test_header_errors_are_logged_and_raised(caplog: pytest.LogCaptureFixture) -> None:
    def broken() -> Any:
        raise RuntimeError("tenant lookup failed")

    app = App()
    middleware = ConditionalCacheMiddleware(app=app, config=CacheConfig.build(namespace=broken))
    collector = ResponseCollector()

    with caplog.at_level("ERROR", logger="easycache.asgi"), pytest.raises(RuntimeError, match="tenant lookup failed"):
        await middleware(create_asgi_scope(), simple_receive, collector.send)

    assert app.calls == 1
    assert collector.status == 0
    assert caplog.records[-1].getMessage() == snapshot(
        "Error computing cache headers: method=GET path=/ status=200 error=tenant lookup failed"
    )
    assert caplog.records[-1].exc_info is not None
