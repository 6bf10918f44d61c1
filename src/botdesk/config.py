"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    db_path: str = "./data/botdesk.db"


class WhatsAppConfig(BaseModel):
    verify_token: Optional[str] = None
    access_token: Optional[str] = None
    phone_number_id: Optional[str] = None
    api_version: str = "v17.0"
    api_base: str = "https://graph.facebook.com"


class TelegramConfig(BaseModel):
    bot_token: Optional[str] = None
    webhook_url: Optional[str] = None  # public URL registered via setWebhook


class MessengerConfig(BaseModel):
    verify_token: Optional[str] = None
    access_token: Optional[str] = None
    api_version: str = "v17.0"
    api_base: str = "https://graph.facebook.com"


class ChannelsConfig(BaseModel):
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    messenger: MessengerConfig = Field(default_factory=MessengerConfig)


class BotDefaultsConfig(BaseModel):
    """Seed values for the bot configuration record on first start."""

    name: str = "BotDesk Assistant"
    language: str = "en"
    tone: str = "professional"
    confidence_threshold: int = Field(default=75, ge=0, le=100)
    max_response_time: int = Field(default=3, ge=1)  # seconds
    fallback_message: str = "Sorry, I didn't understand that. Can you please rephrase?"
    auto_training: bool = True
    seed_templates: bool = True


class FanoutConfig(BaseModel):
    stats_interval_seconds: int = Field(default=30, ge=1)
    platform_interval_seconds: int = Field(default=60, ge=1)
    stats_window: int = Field(default=1000, ge=1)
    snapshot_messages: int = Field(default=10, ge=0)
    send_timeout_seconds: float = 5.0


class PipelineConfig(BaseModel):
    enforce_deadline: bool = False


class TrainingConfig(BaseModel):
    auto_train_interval_hours: int = Field(default=24, ge=1)
    holdout_ratio: float = Field(default=0.2, gt=0, lt=1)
    max_holdout: int = Field(default=50, ge=1)


class HttpClientConfig(BaseModel):
    timeout_seconds: float = 10.0


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    data_dir: str = "./data"
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    bot: BotDefaultsConfig = Field(default_factory=BotDefaultsConfig)
    fanout: FanoutConfig = Field(default_factory=FanoutConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    http: HttpClientConfig = Field(default_factory=HttpClientConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _drop_unresolved(value: object) -> object:
    """Turn secrets still holding a literal ${VAR} into None."""
    if isinstance(value, dict):
        return {k: _drop_unresolved(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_drop_unresolved(v) for v in value]
    if isinstance(value, str) and _ENV_VAR_PATTERN.fullmatch(value):
        return None
    return value


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    channels = data.get("channels")
    if channels:
        data["channels"] = _drop_unresolved(channels)

    return AppConfig(**data)
