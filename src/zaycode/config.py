"""Configuration management for zaycode."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from zaycode.core.models import MODE_DEFAULTS


class Settings(BaseSettings):
    """Application settings, read once at startup and consumed read-only."""

    model_config = SettingsConfigDict(
        env_prefix="ZAYCODE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ZAYCODE_API_KEY", "OPENROUTER_API_KEY"),
        description="API key for the chat-completion provider",
    )
    api_base: str = Field(default="https://openrouter.ai/api/v1", description="Provider API base URL")
    max_tokens: int = Field(default=4096, description="Maximum tokens for responses")
    temperature: float = Field(default=0.2, description="Sampling temperature")

    # Routing Configuration
    model: str | None = Field(default=None, description="Active model override; locks routing when set")
    mode: str = Field(default="auto", description="Operating mode (auto routes by intent)")
    mode_models: dict[str, str] = Field(
        default_factory=lambda: dict(MODE_DEFAULTS),
        description="Default model per mode",
    )

    # Agent Configuration
    context_max: int = Field(default=128_000, description="Token budget for the conversation")
    max_iterations: int = Field(default=20, description="Maximum number of agent iterations per task")
    timeout_seconds: float = Field(default=120.0, description="Network timeout for one provider call")
    test_command: str | None = Field(default=None, description="Test command used by the build loop")

    # System Configuration
    home: Path = Field(default=Path("~/.zaycode"), description="Home directory for history and indexes")
    save_history: bool = Field(default=True, description="Persist conversation history per session")
    system_prompt: str | None = Field(default=None, description="Extra system prompt text")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    def resolve_home(self) -> Path:
        return self.home.expanduser().resolve()

    @property
    def history_dir(self) -> Path:
        return self.resolve_home() / "history"


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values that win over environment and ``.env``

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)
