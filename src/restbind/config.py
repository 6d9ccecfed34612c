"""Client configuration: an optional YAML file plus environment overrides."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from restbind.errors import RestBindError

BASE_URL_ENV = "RESTBIND_BASE_URL"
TIMEOUT_ENV = "RESTBIND_TIMEOUT"


class ClientConfig(BaseModel):
    base_url: str | None = None
    timeout: float | None = 30.0
    verify: bool = True
    allow_redirects: bool = True
    headers: dict[str, str] = Field(default_factory=dict)  # session defaults, lowest priority


def load_config(path: Path | str | None = None) -> ClientConfig:
    """Read ``path`` (YAML) if given, then apply RESTBIND_* environment variables."""
    data: dict = {}
    if path is not None:
        text = Path(path).read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise RestBindError(f"Invalid config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise RestBindError(f"Config file {path} must contain a mapping")

    base_url = os.getenv(BASE_URL_ENV)
    if base_url:
        data["base_url"] = base_url
    timeout = os.getenv(TIMEOUT_ENV)
    if timeout:
        try:
            data["timeout"] = float(timeout)
        except ValueError as e:
            raise RestBindError(f"{TIMEOUT_ENV} must be a number, got {timeout!r}") from e

    return ClientConfig.model_validate(data)
