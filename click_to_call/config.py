"""
Application configuration settings.

Loaded once at process start from CLICK2CALL_* environment variables (or a .env file)
and passed explicitly to the workflow. The settings object is frozen.
"""
import json
from functools import lru_cache
from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Click-to-call settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="CLICK2CALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Asterisk Manager Interface
    manager_host: str = "127.0.0.1"
    manager_port: int = Field(default=5038, ge=1, le=65535)
    manager_user: str = "admin"
    manager_secret: str = ""

    # Originate parameters
    caller_id_template: str = Field(
        default="CTR Plugin (%s)",
        description="Caller ID shown on the extension; %s is replaced by the dialled number",
    )
    context: str = "from-internal"
    wait_time: int = Field(default=30, ge=0)
    priority: int = Field(default=1, ge=1)

    # Extra attempts to connect and log in when the transport fails
    max_retry: int = Field(default=2, ge=0)

    connect_timeout: float = Field(default=5.0, gt=0)
    response_timeout: float = Field(default=5.0, gt=0)

    allowed_ips: Union[str, List[str]] = Field(
        default=["127.0.0.1", "::1"],
        description="Exact addresses, wildcards (172.31.*) or CIDR ranges (2001:db8::/32)",
    )

    log_level: str = "INFO"

    @field_validator("allowed_ips")
    @classmethod
    def parse_allowed_ips(cls, v):
        """Parse allowed_ips from a JSON list or a comma-separated string."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return [entry.strip() for entry in v.split(",") if entry.strip()]
            if isinstance(parsed, str):
                return [parsed]
            return [str(entry).strip() for entry in parsed]
        return [entry.strip() for entry in v]

    @field_validator("caller_id_template")
    @classmethod
    def check_caller_id_template(cls, v):
        if v.replace("%%", "").count("%s") != 1:
            raise ValueError("caller_id_template must contain exactly one %s")
        try:
            v % ("0",)
        except (TypeError, ValueError) as e:
            raise ValueError(f"caller_id_template is not a valid template: {e}")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
