"""Application configuration defaults and loading."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from secondbrain.errors import ConfigurationError
from secondbrain.kb.encoder import DEFAULT_MODEL

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SECONDBRAIN_CONFIG"
DEFAULT_CONFIG_FILE = Path("secondbrain.json")


class LocalProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: str = "http://localhost:11434"
    model: str = "llama3.1:8b"
    timeout_seconds: float = Field(default=300.0, gt=0)


class HostedProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: str = "https://api.cloudflare.com/client/v4"
    account_id: str = ""
    api_token: str = ""
    generation_model: str = "@cf/meta/llama-3-8b-instruct"
    timeout_seconds: float = Field(default=120.0, gt=0)


class ChatConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    history_window: int = Field(default=5, ge=0, strict=True)
    llm_model: str = "gemma3:4b"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_folder: Optional[Path] = None
    index_name: str = "default"
    min_relevance: float = Field(default=0.3, ge=0.0, le=1.0)
    search_limit: int = Field(default=5, ge=1, strict=True)
    db_path: Path = Path("data/secondbrain.db")
    stored_last_run: Path = Path("data/last_run.txt")
    default_last_run: str = "2000-01-01 00:00:00"
    results_path: Path = Path("data/rag-results.json")
    embedding_model: str = DEFAULT_MODEL
    chunk_chars: int = Field(default=1200, ge=1, strict=True)
    overlap: int = Field(default=200, ge=0, strict=True)
    mode: Literal["local", "hosted"] = "local"
    import_workers: int = Field(default=1, ge=1, strict=True)
    local: LocalProviderConfig = Field(default_factory=LocalProviderConfig)
    hosted: HostedProviderConfig = Field(default_factory=HostedProviderConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @field_validator("index_name")
    @classmethod
    def _index_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("index_name must not be empty")
        return value

    @model_validator(mode="after")
    def _overlap_below_chunk(self) -> "AppConfig":
        if self.overlap >= self.chunk_chars:
            raise ValueError("overlap must be smaller than chunk_chars")
        return self

    def resolve_path(self, value: Path, base_dir: Path | None = None) -> Path:
        path = Path(value).expanduser()
        if path.is_absolute() or base_dir is None:
            return path
        return base_dir / path


def _apply_env(raw: Mapping[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = dict(raw)
    if environ.get("SECONDBRAIN_MODE"):
        merged["mode"] = environ["SECONDBRAIN_MODE"].strip().lower()
    hosted = {}
    if environ.get("SECONDBRAIN_API_TOKEN"):
        hosted["api_token"] = environ["SECONDBRAIN_API_TOKEN"]
    if environ.get("SECONDBRAIN_ACCOUNT_ID"):
        hosted["account_id"] = environ["SECONDBRAIN_ACCOUNT_ID"]
    section = merged.get("hosted", {})
    # A non-object section is left as is and rejected by validation.
    if hosted and isinstance(section, Mapping):
        merged["hosted"] = {**section, **hosted}
    return merged


def load_config(
    path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """Load settings from a JSON file, falling back to defaults.

    The file is looked up at `path`, then `$SECONDBRAIN_CONFIG`, then
    `secondbrain.json` in the working directory. A missing file yields the
    defaults; a malformed one raises `ConfigurationError`.
    """
    environ = os.environ if environ is None else environ
    if path is None:
        path = Path(environ[CONFIG_ENV_VAR]) if environ.get(CONFIG_ENV_VAR) else DEFAULT_CONFIG_FILE

    raw: Any = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Invalid configuration in {path}: expected an object")
        LOGGER.debug("Loaded configuration from %s", path)
    else:
        LOGGER.debug("No configuration file at %s, using defaults", path)

    try:
        return AppConfig.model_validate(_apply_env(raw, environ))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path}:\n{exc}") from exc
