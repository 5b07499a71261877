# src/chatcore/config/settings.py
"""
Layered runtime settings for chatcore.

Values are resolved (lowest to highest precedence) from the packaged
``default_config.toml``, an optional user TOML file, a ``.env`` file,
environment variables and finally explicit keyword overrides.

The two message clipping knobs keep their historical unprefixed environment
names ``MESSAGE_SIZE_LIMIT`` and ``MESSAGE_SIZE_KEEP``; every other key is
read from ``CHATCORE_<KEY>``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import (BaseSettings, PydanticBaseSettingsSource,
                               SettingsConfigDict, TomlConfigSettingsSource)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default_config.toml")


class ChatCoreSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHATCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        toml_file=DEFAULT_CONFIG_PATH,
    )

    message_size_limit: int = Field(
        default=12000,
        validation_alias=AliasChoices("MESSAGE_SIZE_LIMIT", "message_size_limit"),
        description="Assistant messages longer than this many characters are clipped.",
    )
    message_size_keep: int = Field(
        default=2000,
        validation_alias=AliasChoices("MESSAGE_SIZE_KEEP", "message_size_keep"),
        description="Characters kept from a clipped assistant message.",
    )

    plugin_chunk_size: int = Field(default=8000, gt=0)
    model_chunk_sizes: Dict[str, int] = Field(default_factory=dict)
    tokenizer_encoding: str = "cl100k_base"

    backend_base_url: str = "http://localhost:3000"
    request_timeout: float = Field(default=60.0, gt=0)
    stop_grace_period: float = Field(default=0.1, ge=0)
    web_embeddings_provider: str = "openai"

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )

    log_level: str = "INFO"
    logging: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode='after')
    def check_message_size_window(self) -> "ChatCoreSettings":
        if self.message_size_keep < 0 or self.message_size_limit < 0:
            raise ValueError("message_size_limit and message_size_keep must be non-negative.")
        if self.message_size_keep > self.message_size_limit:
            raise ValueError(
                f"message_size_keep ({self.message_size_keep}) cannot exceed "
                f"message_size_limit ({self.message_size_limit})."
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
        )


def load_settings(config_file_path: Optional[Union[str, Path]] = None, **overrides: Any) -> ChatCoreSettings:
    """
    Build a settings object, optionally layering a user TOML file over the
    packaged defaults.

    Args:
        config_file_path: Path to a user TOML file. Keys present there win over
                          the packaged defaults but lose to the environment.
        **overrides: Explicit values that win over every other source.

    Raises:
        ConfigError: If the user config file does not exist or values fail validation.
    """
    from ..exceptions import ConfigError

    settings_cls: Type[ChatCoreSettings] = ChatCoreSettings
    if config_file_path is not None:
        user_path = Path(config_file_path).expanduser()
        if not user_path.is_file():
            raise ConfigError(f"Config file not found: '{user_path}'")

        class _FileLayeredSettings(ChatCoreSettings):
            model_config = SettingsConfigDict(toml_file=[DEFAULT_CONFIG_PATH, user_path])

        settings_cls = _FileLayeredSettings

    try:
        return settings_cls(**overrides)
    except ValueError as e:
        raise ConfigError(f"chatcore configuration loading failed: {e}")


@lru_cache
def get_settings() -> ChatCoreSettings:
    """Process-wide settings built from defaults and the environment."""
    return load_settings()
