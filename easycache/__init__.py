from easycache._core._headers import Headers as Headers
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
from easycache._exceptions import ConfigurationError as ConfigurationError, EasyCacheError as EasyCacheError
from easycache._async_cache import AsyncConditionalCache as AsyncConditionalCache
from easycache._sync_cache import SyncConditionalCache as SyncConditionalCache

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
    ## Headers
    "Headers",
    ## Errors
    "EasyCacheError",
    "ConfigurationError",
    # Proxy
    "AsyncConditionalCache",
    "SyncConditionalCache",
)
