from easycache._core._evaluators import (
    EPOCH as EPOCH,
    as_instant as as_instant,
    digest_etag as digest_etag,
    evaluate_etag as evaluate_etag,
    evaluate_expires as evaluate_expires,
    evaluate_last_modified as evaluate_last_modified,
    select_time as select_time,
    to_instant as to_instant,
)
from easycache._core._headers import (
    Headers as Headers,
    compose_cache_control as compose_cache_control,
    sanitize_namespace as sanitize_namespace,
)
from easycache._core._resolver import resolve as resolve, resolve_all as resolve_all
from easycache._core._spec import (
    AnyState as AnyState,
    CacheOptions as CacheOptions,
    DefaultValidators as DefaultValidators,
    Evaluating as Evaluating,
    IdleRequest as IdleRequest,
    NotModified as NotModified,
    PassThrough as PassThrough,
    State as State,
)
from easycache._core.models import (
    CacheConfig as CacheConfig,
    CallbackSource as CallbackSource,
    Decision as Decision,
    FieldSource as FieldSource,
    LiteralSource as LiteralSource,
    RequestContext as RequestContext,
    Response as Response,
    ThunkSource as ThunkSource,
    ValidatorSpec as ValidatorSpec,
    Validators as Validators,
    as_spec as as_spec,
)

__all__ = (
    ## States
    "AnyState",
    "State",
    "IdleRequest",
    "Evaluating",
    "NotModified",
    "PassThrough",
    ## Options
    "CacheOptions",
    "DefaultValidators",
    ## Models
    "CacheConfig",
    "RequestContext",
    "Response",
    "Decision",
    "Validators",
    "ValidatorSpec",
    "LiteralSource",
    "FieldSource",
    "ThunkSource",
    "CallbackSource",
    "as_spec",
    ## Evaluation
    "EPOCH",
    "resolve",
    "resolve_all",
    "as_instant",
    "to_instant",
    "select_time",
    "evaluate_last_modified",
    "evaluate_etag",
    "digest_etag",
    "evaluate_expires",
    ## Headers
    "Headers",
    "compose_cache_control",
    "sanitize_namespace",
)
