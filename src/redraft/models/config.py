"""Configuration models for Redraft."""

from pathlib import Path
from typing import Dict, List, Literal

from pydantic import BaseModel, Field, HttpUrl, field_validator


ModelId = Literal["sonnet", "opus", "haiku"]

DEFAULT_MODEL_MAP: Dict[str, str] = {
    "sonnet": "claude-sonnet-4-5-20250929",
    "opus": "claude-opus-4-6",
    "haiku": "claude-haiku-4-5-20251001",
}


class LLMConfig(BaseModel):
    """Configuration for the text-generation API connection."""

    endpoint: HttpUrl = Field(
        default="https://api.anthropic.com/v1",
        description="API endpoint URL (OpenAI-compatible or Ollama)"
    )

    api_key: str = Field(
        default="",
        description="API key for authentication (empty for local Ollama)"
    )

    models: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MODEL_MAP),
        description="Model selector -> provider model identifier"
    )

    default_model: ModelId = Field(
        default="sonnet",
        description="Selector used when a request does not name one"
    )

    num_ctx: int = Field(
        default=32768,
        ge=1024,
        description="Context window size (Ollama-specific, controls VRAM usage)"
    )

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Sampling temperature"
    )

    @field_validator("models")
    @classmethod
    def fill_missing_models(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Selectors left out of the config keep their default model id."""
        merged = dict(DEFAULT_MODEL_MAP)
        merged.update({name: model for name, model in v.items() if model})
        return merged

    def resolve_model(self, selector: str | None) -> str:
        """Translate a model selector into the provider's model identifier."""
        return self.models.get(selector or self.default_model, self.models[self.default_model])

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Configuration for the snapshot store location."""

    versions_dir: str = Field(
        default=str(Path.home() / ".local" / "share" / "redraft" / "versions"),
        description="Directory holding manifest.json and snapshot files"
    )

    @field_validator("versions_dir")
    @classmethod
    def expand_versions_dir(cls, v: str) -> str:
        """Expand ~ in the configured path."""
        path = Path(v).expanduser()
        if path.exists() and not path.is_dir():
            raise ValueError(
                f"Versions path is not a directory: {path}\n"
                f"Please provide a valid directory path"
            )
        return str(path)

    model_config = {"frozen": True}


class ServerConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: str = Field(default="127.0.0.1", description="Bind address")

    port: int = Field(default=3001, ge=1, le=65535, description="Bind port")

    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware"
    )

    model_config = {"frozen": True}


class Configuration(BaseModel):
    """Root configuration for Redraft."""

    llm: LLMConfig = Field(default_factory=LLMConfig, description="Model API settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Snapshot store settings")
    server: ServerConfig = Field(default_factory=ServerConfig, description="HTTP server settings")

    model_config = {"frozen": True}
