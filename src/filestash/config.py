from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

DEFAULT_DIRECTORY_MODE = 0o750


class BatchErrorPolicy(StrEnum):
    FIRST = "first"
    ALL = "all"


class RemoteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    token_env: str | None = None

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("remote.base_url must start with http:// or https://")
        return normalized

    @field_validator("token_env")
    @classmethod
    def validate_token_env(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError("remote.token_env must not be empty")
        return normalized


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: str | None = None
    directory_mode: int = Field(default=DEFAULT_DIRECTORY_MODE, ge=0, le=0o7777)
    reject_unsafe_names: bool = True
    batch_errors: BatchErrorPolicy = BatchErrorPolicy.FIRST
    remote: RemoteConfig | None = None

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value if value.strip() else None


def load_config(path: str | Path) -> StoreConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    try:
        return StoreConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ValueError(f"Configuration is neither JSON nor YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
