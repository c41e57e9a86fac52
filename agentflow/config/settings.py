"""
Agent Flow Studio - Configuration Settings
Layout geometry, editor history, and API defaults for the flow editor core.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Agent Flow Studio settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ── Layout Geometry ───────────────────────────────────────────────
    node_width: float = Field(default=280, alias="FLOW_NODE_WIDTH")
    node_height: float = Field(default=160, alias="FLOW_NODE_HEIGHT")
    horizontal_spacing: float = Field(default=80, alias="FLOW_HORIZONTAL_SPACING")
    vertical_spacing: float = Field(default=150, alias="FLOW_VERTICAL_SPACING")
    layout_margin: float = Field(default=50, alias="FLOW_LAYOUT_MARGIN")
    capability_gap: float = Field(default=100, alias="FLOW_CAPABILITY_GAP")
    layout_sweeps: int = Field(default=4, alias="FLOW_LAYOUT_SWEEPS")

    # ── Editor Session ────────────────────────────────────────────────
    history_limit: int = Field(default=100, alias="FLOW_HISTORY_LIMIT")

    # ── API ───────────────────────────────────────────────────────────
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")
    api_title: Optional[str] = Field(default="Agent Flow Studio", alias="API_TITLE")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["dev", "development", "qa", "uit", "prod"]
        if v.lower() not in allowed:
            print(f"[SETTINGS] Warning: environment '{v}' not in {allowed}")
        return v.lower()

    @field_validator("layout_sweeps", "history_limit")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        return max(v, 0)


settings = Settings()
