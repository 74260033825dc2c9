from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8080)
    LOG_LEVEL: str = Field(default="INFO")
    COLLABORATOR_URL: str = Field(
        default="http://web-sub-client:8080",
        description="base address of the resubscription helper service",
    )
    ECHO_SUBSCRIBER_LOGS: bool = Field(default=True)
    OUTBOUND_TIMEOUT_SECONDS: float = Field(default=10.0, ge=0)  # 0 = no timeout
    FOLLOW_REDIRECTS: bool = Field(default=True)
    CHALLENGE_BYTES: int = Field(default=16, ge=1)
    VERIFY_MAX_BODY_BYTES: int = Field(default=65536, ge=0)  # 0 = unbounded
    VERIFY_CONCURRENCY: int = Field(default=32, ge=1)
    DELIVERY_CONCURRENCY: int = Field(default=64, ge=1)
    SHUTDOWN_GRACE_SECONDS: float = Field(default=5.0, ge=0)


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            if field.is_required():
                continue
            values[name] = field.get_default(call_default_factory=True)
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        invalid = sorted(
            {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        )
        if invalid:
            joined = ", ".join(invalid)
            raise RuntimeError(
                f"Invalid or missing environment variables: {joined}"
            ) from exc
        raise


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
