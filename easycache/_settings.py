from typing import Any, List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from typing_extensions import Annotated

ENV_PREFIX = "EASYCACHE_"


class EasyCacheSettings(BaseSettings):
    """Engine options loaded from `EASYCACHE_*` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        case_sensitive=False,
        str_strip_whitespace=True,
        env_file=None,
    )

    enabled: bool = True
    cache_buster: Optional[str] = None
    invalid_validators: Literal["drop", "poison"] = "drop"
    etag_algorithm: str = "md5"
    supported_methods: Annotated[Optional[List[str]], NoDecode] = ["GET", "HEAD"]

    @field_validator("supported_methods", mode="before")
    @classmethod
    def split_methods(cls, value: Any) -> Any:
        """Comma separated method list; `*` disables the method gate."""
        if not isinstance(value, str):
            return value
        if value.strip() == "*":
            return None
        return [method.strip() for method in value.split(",") if method.strip()]
