from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

import pytest

from easycache import Headers, RequestContext

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=ZoneInfo("UTC"))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class Controller:
    """A request-scoped subject exposing the kinds of objects handlers usually read."""

    def resource(self) -> SimpleNamespace:
        return SimpleNamespace(updated_at=NOW - timedelta(hours=2))

    def list(self) -> SimpleNamespace:
        return SimpleNamespace(updated_on=NOW - timedelta(minutes=30))

    def object(self) -> SimpleNamespace:
        return SimpleNamespace(cached_at=NOW - timedelta(minutes=15))

    def some_time_from_now(self) -> datetime:
        return datetime(2030, 1, 1, tzinfo=ZoneInfo("UTC"))


def create_context(
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    subject: Any = None,
    is_subrequest: bool = False,
) -> RequestContext:
    """Helper to create a request context."""
    return RequestContext(
        method=method,
        headers=Headers(headers or {}),
        subject=subject,
        is_subrequest=is_subrequest,
    )
