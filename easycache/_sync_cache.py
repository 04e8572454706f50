from __future__ import annotations

import logging
from typing import Callable

from typing_extensions import assert_never

from easycache._core import (
    AnyState,
    CacheConfig,
    CacheOptions,
    Evaluating,
    IdleRequest,
    NotModified,
    PassThrough,
    RequestContext,
    Response,
)
from easycache._core._spec import NOT_MODIFIED_STATUS_CODE

logger = logging.getLogger("easycache.integrations.handlers")


class SyncConditionalCache:
    """
    Conditional caching around a synchronous handler.

    This class is independent of any specific web framework and works only with internal models.
    The host converts its request into a `RequestContext`, and the handler returns a `Response`.

    Args:
        handler: Callable that produces the response when the request is not short-circuited.
        config: Validators declared for this handler.
        options: Engine-wide options. Defaults to `CacheOptions()`.
    """

    def __init__(
        self,
        handler: Callable[[RequestContext], Response],
        config: CacheConfig,
        options: CacheOptions | None = None,
    ) -> None:
        self.handler = handler
        self.config = config
        self.options = options if options is not None else CacheOptions()

    def handle_request(self, context: RequestContext) -> Response:
        state: AnyState = IdleRequest(options=self.options, config=self.config)

        while state:
            logger.debug(f"Handling state: {state.__class__.__name__}")
            if isinstance(state, IdleRequest):
                state = state.next(context)
            elif isinstance(state, Evaluating):
                state = state.next()
            elif isinstance(state, NotModified):
                return Response(status_code=NOT_MODIFIED_STATUS_CODE, headers=state.decision.headers)
            elif isinstance(state, PassThrough):
                return self._handle_pass_through(state, context)
            else:
                assert_never(state)

        raise RuntimeError("Unreachable")

    def _handle_pass_through(self, state: PassThrough, context: RequestContext) -> Response:
        response = self.handler(context)
        decision = state.next(response.status_code)
        for name, value in decision.headers.items():
            response.headers[name] = value
        return response
