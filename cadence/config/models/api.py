"""HTTP surface settings."""

from pydantic import BaseModel, Field, field_validator


class APIConfig(BaseModel):
    """Where the trigger API listens and who may call it from a browser."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["*"],
        description="Origins allowed to call the API; a comma-separated string is accepted",
    )
    cors_allow_credentials: bool = Field(default=True)
    docs_enabled: bool = Field(
        default=True, description="Serve /docs and /openapi.json"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: object) -> object:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v
