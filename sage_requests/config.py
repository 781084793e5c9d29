"""Configuration loader: YAML with ${VAR} interpolation, validated by pydantic."""

import os
import re
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


class ServiceEndpoint(BaseModel):
    base_url: str
    timeout: float = 5.0


class SummaryEndpoint(ServiceEndpoint):
    timeout: float = 15.0


class ServicesConfig(BaseModel):
    billing: ServiceEndpoint = Field(
        default_factory=lambda: ServiceEndpoint(base_url="http://localhost:8081")
    )
    llm: SummaryEndpoint = Field(
        default_factory=lambda: SummaryEndpoint(base_url="http://localhost:8083")
    )
    chat: ServiceEndpoint = Field(
        default_factory=lambda: ServiceEndpoint(base_url="http://localhost:8084")
    )


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///./data/requests.db"
    echo: bool = False
    create_schema: bool = True

    @field_validator("url")
    @classmethod
    def _parseable_url(cls, value: str) -> str:
        try:
            make_url(value)
        except ArgumentError as exc:
            raise ValueError(f"invalid database url: {value}") from exc
        return value


class PolicyConfig(BaseModel):
    refund_on_failure: bool = False
    strict_ratings: bool = True
    restrict_resolve_to_assignee: bool = True
    bot_identity: str = "LLM_BOT_IDENTITY"


class Settings(BaseModel):
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8082
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")

# Environment variables that override a config value when set.
_ENV_OVERRIDES = {
    "SAGE_DATABASE_URL": ("database", "url"),
    "BILLING_SERVICE_URL": ("services", "billing", "base_url"),
    "LLM_SERVICE_URL": ("services", "llm", "base_url"),
    "CHAT_SERVICE_URL": ("services", "chat", "base_url"),
    "PORT": ("port",),
    "LOG_LEVEL": ("log_level",),
}


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        value = os.environ.get(match.group(1))
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _drop_unresolved(node):
    """Remove values whose ${VAR} placeholder had no environment value, so defaults apply."""
    if isinstance(node, dict):
        return {
            key: _drop_unresolved(value)
            for key, value in node.items()
            if not (isinstance(value, str) and _ENV_VAR_PATTERN.search(value))
        }
    return node


def _apply_env_overrides(data: dict) -> dict:
    for var_name, path in _ENV_OVERRIDES.items():
        value = os.environ.get(var_name)
        if not value:
            continue
        node = data
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    return data


def load_config(
    config_path: Optional[Union[str, Path]] = "config.yaml",
    env_path: Union[str, Path] = ".env",
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    data: dict = {}
    if config_path is not None:
        config_file = Path(config_path)
        if config_file.exists():
            raw_text = config_file.read_text(encoding="utf-8")
            data = _drop_unresolved(yaml.safe_load(_interpolate_env_vars(raw_text)) or {})

    return Settings(**_apply_env_overrides(data))
