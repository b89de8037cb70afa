"""Root settings model.

Precedence, highest first:
    1. keyword arguments to Settings()
    2. CADENCE_* environment variables ("__" separates nested keys)
    3. merged TOML layers handed over with set_toml_config()
    4. defaults declared on the section models
"""

from typing import Any

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.config.models.api import APIConfig
from cadence.config.models.delivery import DeliveryConfig, SchedulerConfig
from cadence.config.models.observability import ObservabilityConfig
from cadence.config.models.storage import StorageConfig
from cadence.config.models.transport import TransportConfig

_toml_layer: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Replace the TOML values seen by subsequently built Settings."""
    global _toml_layer
    _toml_layer = dict(config)


class TomlLayerSource(PydanticBaseSettingsSource):
    """Feeds the merged TOML layers into pydantic-settings."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        value = _toml_layer.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {
            name: _toml_layer[name]
            for name in self.settings_cls.model_fields
            if name in _toml_layer
        }


class Settings(BaseSettings):
    """Complete Cadence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="cadence", description="Service name in logs")
    debug: bool = Field(default=False)

    api: APIConfig = Field(default_factory=APIConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    delivery: DeliveryConfig = Field(
        default_factory=DeliveryConfig,
        description="Claim & execution engine",
    )
    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig,
        description="Trigger loop and wake-up planning",
    )
    transport: TransportConfig = Field(default_factory=TransportConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # No .env or secrets-dir support; TOML layers replace both
        return (init_settings, env_settings, TomlLayerSource(settings_cls))
