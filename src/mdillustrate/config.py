"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "MDILLUSTRATE_"


class Settings(BaseModel):
    app_name:          str = "mdillustrate"
    connection_mode:   str = Field(default="direct", pattern="^(direct|proxy)$", description="direct APIs or the proxy server")
    gemini_api_key:    str = Field(default="", description="Planner API key (direct mode)")
    kie_api_key:       str = Field(default="", description="Image job API key (direct mode)")
    proxy_url:         str = Field(default="https://gemini-image-proxy.your-domain.workers.dev", description="Proxy base URL")
    proxy_token:       str = Field(default="", description="Bearer token for the proxy")
    image_count:       int = Field(default=4, ge=1, le=8, description="Max images per note")
    image_style:       str = Field(default="infographic", pattern="^(infographic|diagram|card|whiteboard|slide)$")
    aspect_ratio:      str = Field(default="16:9", pattern="^(16:9|4:3|1:1|9:16|3:4)$")
    resolution:        str = Field(default="1K", pattern="^(1K|2K|4K)$")
    language:          str = Field(default="ja", pattern="^(ja|en)$")
    attachment_folder: str = Field(default="attachments/ai-summary", description="Image folder, relative to the note")
    send_mode:         str = Field(default="headings", pattern="^(full|headings|summary)$", description="How much of the note the planner sees")
    max_characters:    int = Field(default=30000, ge=100, description="Planner excerpt budget")
    create_backup:     bool = Field(default=True, description="Store the original note before injecting")
    max_backups:       int = Field(default=5, ge=0, description="Max stored backups; 0 disables pruning")
    db_url:            str = "sqlite:///mdillustrate.db"
    poll_interval:     float = Field(default=5.0, ge=0, description="Seconds between job status polls")
    poll_max_attempts: int = Field(default=60, ge=1, description="Polls before a job times out")
    http_timeout:      float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")
    log_level:         str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR)$")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDILLUSTRATE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
