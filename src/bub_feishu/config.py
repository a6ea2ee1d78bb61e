"""Configuration management for the Feishu adapter."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ACCOUNT_ID = "default"

RenderMode = Literal["auto", "raw", "card"]
ChunkMode = Literal["length", "newline"]
TableMode = Literal["off", "bullets", "code"]
Domain = Literal["feishu", "lark"]


class FeishuAccountConfig(BaseModel):
    """Credentials and overrides for one named account."""

    app_id: str = ""
    app_secret: str = ""
    domain: Domain = "feishu"
    enabled: bool = True
    render_mode: RenderMode | None = None


class FeishuSettings(BaseSettings):
    """Adapter settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUB_FEISHU_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Default account credentials
    app_id: str = Field(default="", description="Feishu app id")
    app_secret: str = Field(default="", description="Feishu app secret")
    domain: Domain = Field(default="feishu", description="Open platform domain: feishu or lark")
    default_account: str = Field(default=DEFAULT_ACCOUNT_ID, description="Account id used when none is given")
    accounts: dict[str, FeishuAccountConfig] = Field(default_factory=dict, description="Named accounts")

    # Rendering
    render_mode: RenderMode = Field(default="auto", description="Reply render mode: auto, raw or card")
    text_chunk_limit: int = Field(default=4000, gt=0, description="Maximum characters per outbound message")
    chunk_mode: ChunkMode = Field(default="length", description="Chunking strategy for long replies")
    table_mode: TableMode = Field(default="bullets", description="Markdown table conversion for raw replies")

    # Media
    temp_dir: Path | None = Field(default=None, description="Scratch directory for upload/download files")
    media_fetch_timeout: float = Field(default=30.0, gt=0, description="Timeout for remote media fetches in seconds")

    typing_emoji: str = Field(default="Typing", description="Reaction used as the typing indicator")


@dataclass(frozen=True)
class FeishuAccount:
    """A resolved account: identity, usability and effective config."""

    account_id: str
    configured: bool
    config: FeishuAccountConfig

    @property
    def render_mode(self) -> RenderMode | None:
        return self.config.render_mode


def resolve_account(settings: FeishuSettings, account_id: str | None = None) -> FeishuAccount:
    """Resolve an account id against the settings. Never raises."""
    resolved_id = (account_id or settings.default_account or DEFAULT_ACCOUNT_ID).strip()
    config = settings.accounts.get(resolved_id)
    if config is None:
        if resolved_id != settings.default_account:
            return FeishuAccount(account_id=resolved_id, configured=False, config=FeishuAccountConfig(enabled=False))
        config = FeishuAccountConfig(
            app_id=settings.app_id,
            app_secret=settings.app_secret,
            domain=settings.domain,
        )
    configured = config.enabled and bool(config.app_id.strip()) and bool(config.app_secret.strip())
    return FeishuAccount(account_id=resolved_id, configured=configured, config=config)
