from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from typing_extensions import assert_never

from easycache._core.models import (
    CallbackSource,
    FieldSource,
    LiteralSource,
    RequestContext,
    ThunkSource,
    ValidatorSpec,
)

logger = logging.getLogger("easycache.core.resolver")


def read_field(subject: Any, name: str) -> Any:
    """
    Read `name` from `subject`.

    Mappings are indexed, other objects use attribute access. A bound method
    found this way is called without arguments. Lookup errors propagate.
    """
    if isinstance(subject, Mapping):
        value = subject[name]
    else:
        value = getattr(subject, name)
    if callable(value) and not isinstance(value, type):
        return value()
    return value


def has_field(subject: Any, name: str) -> bool:
    if isinstance(subject, Mapping):
        return name in subject
    return hasattr(subject, name)


def resolve(spec: ValidatorSpec, context: RequestContext) -> Any:
    """
    Turn one configured validator into a concrete value for this request.

    Nothing is cached: every call re-reads the source. Exceptions raised by
    host callables or accessors propagate unchanged.
    """
    if isinstance(spec, LiteralSource):
        return spec.value
    elif isinstance(spec, FieldSource):
        value = read_field(context.subject, spec.name)
        if spec.accessor is not None and has_field(value, spec.accessor):
            return read_field(value, spec.accessor)
        return value
    elif isinstance(spec, ThunkSource):
        return spec.source()
    elif isinstance(spec, CallbackSource):
        return spec.source(context)
    else:
        assert_never(spec)


def resolve_all(specs: Iterable[ValidatorSpec], context: RequestContext) -> List[Any]:
    values = [resolve(spec, context) for spec in specs]
    logger.debug("Resolved %d validator source(s)", len(values))
    return values
