"""Application configuration with sensible defaults.

Settings are resolved once at process start (defaults < YAML file <
environment) and passed explicitly into every component.
"""
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from ragia.errors import ConfigError

# Environment variable for an optional YAML settings file
CONFIG_FILE_ENV = "RAGIA_CONFIG"

# Field name -> environment variable
ENV_VARS = {
    "embeddings_url": "EMBEDDINGS_URL",
    "embeddings_model": "EMBEDDINGS_MODEL",
    "embedding_dim": "EMBEDDINGS_DIM",
    "embeddings_timeout": "EMBEDDINGS_TIMEOUT",
    "llm_url": "LLM_URL",
    "llm_model": "LLM_MODEL",
    "llm_api_key": "LLM_API_KEY",
    "llm_enabled": "LLM_ENABLED",
    "llm_max_tokens": "LLM_MAX_TOKENS",
    "llm_temperature": "LLM_TEMPERATURE",
    "llm_context_chars": "LLM_CONTEXT_CHARS",
    "llm_timeout": "LLM_TIMEOUT",
    "chunk_size": "CHUNK_SIZE",
    "top_k": "TOP_K",
    "max_question_chars": "MAX_QUESTION_CHARS",
    "ingest_path": "INGEST_PATH",
    "data_dir": "DATA_DIR",
    "host": "HOST",
    "port": "PORT",
    "log_level": "LOG_LEVEL",
    "cors_origins": "CORS_ORIGINS",
}


class Settings(BaseModel):
    """Immutable process-wide configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Embedding service (OpenAI-compatible /v1/embeddings)
    embeddings_url: str = "http://localhost:1234/v1/embeddings"
    embeddings_model: str = "nomic-embed-text-v1.5"
    embedding_dim: int = Field(default=768, gt=0)
    embeddings_timeout: float = Field(default=5.0, gt=0)

    # Generative model (OpenAI-compatible /v1/chat/completions)
    llm_url: str = "http://localhost:1235/v1/chat/completions"
    llm_model: str = "qwen3-4b-instruct-2507"
    llm_api_key: str = ""
    llm_enabled: bool = True
    llm_max_tokens: int = Field(default=512, gt=0)
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    llm_context_chars: int = Field(default=1200, gt=0)
    llm_timeout: float = Field(default=5.0, gt=0)

    # RAG parameters (character-based)
    chunk_size: int = Field(default=800, gt=0)
    top_k: int = Field(default=4, gt=0)
    max_question_chars: int = Field(default=2000, gt=0)

    # Paths
    ingest_path: Path = Path("data")
    data_dir: Path = Path("data")

    # Server & logging
    host: str = "0.0.0.0"
    port: int = Field(default=3000, gt=0, lt=65536)
    log_level: str = "INFO"

    # "*" or comma-separated list of allowed browser origins
    cors_origins: str = "*"

    @field_validator("embeddings_url", "llm_url")
    @classmethod
    def _check_url(cls, value: str, info: ValidationInfo) -> str:
        # An empty LLM_URL leaves generation unconfigured
        if not value and info.field_name == "llm_url":
            return value
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid URL {value!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"URL must be absolute http(s): {value!r}")
        return value

    @property
    def db_path(self) -> Path:
        return self.data_dir / "ragia.sqlite"

    @property
    def vector_index_path(self) -> Path:
        return self.data_dir / "vectors.index"

    @property
    def cors_allow_origin(self) -> Union[str, List[str]]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        if not origins or "*" in origins:
            return "*"
        return origins


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML settings file.

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of field names to values

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
) -> Settings:
    """Build the process settings.

    Args:
        environ: Environment mapping (default: os.environ)
        config_file: Optional YAML file; falls back to $RAGIA_CONFIG

    Returns:
        Validated, frozen Settings

    Raises:
        ConfigError: If any value is invalid
    """
    environ = os.environ if environ is None else environ

    if config_file is None and environ.get(CONFIG_FILE_ENV):
        config_file = Path(environ[CONFIG_FILE_ENV])

    values: Dict[str, Any] = {}
    if config_file is not None:
        values.update(_read_config_file(Path(config_file)))

    for field, env_name in ENV_VARS.items():
        raw = environ.get(env_name)
        if raw is not None and raw != "":
            values[field] = raw

    try:
        return Settings(**values)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
