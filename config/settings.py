"""Configuration settings and data models."""

from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator
import yaml
from pathlib import Path


class GameConfig(BaseModel):
    """Round rules for a Clone game."""

    topic: str = Field(default="General", description="Topic passed to the answer generator")
    vote_tie_break: Literal["generated", "human"] = Field(
        default="generated",
        description="Majority used when human and generated votes are tied",
    )
    require_master_review: bool = Field(
        default=False,
        description="Hold submitted responses in master_review until the host reveals them",
    )
    min_players: int = Field(default=2, description="Minimum players needed to start")

    @field_validator("min_players")
    @classmethod
    def validate_min_players(cls, v):
        if v < 2:
            raise ValueError("A game needs at least 2 players (one per team)")
        return v


class ModelConfig(BaseModel):
    """Configuration for the model that writes generated answers."""

    name: str = Field(default="gpt-3.5-turbo", description="Model name (e.g., 'gpt-4o-mini' for OpenAI, 'openai/gpt-4' for OpenRouter)")
    provider: str = Field(default="openai", description="Model provider (openai, openrouter)")
    max_tokens: int = Field(default=100, description="Maximum tokens per generated answer")
    temperature: float = Field(default=0.8, description="Model temperature")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v):
        valid_providers = {"openai", "openrouter"}
        if v not in valid_providers:
            raise ValueError(f"Provider must be one of: {valid_providers}")
        return v


class GeneratorConfig(BaseModel):
    """Generated-answer settings."""

    enabled: bool = Field(default=True, description="Call the model; False uses the offline fallback only")
    model: ModelConfig = Field(default_factory=ModelConfig, description="Model used for generated answers")
    timeout: float = Field(
        default=10.0, description="Seconds to wait before falling back to offline text"
    )


class OpenAIConfig(BaseModel):
    """OpenAI (or any OpenAI-compatible endpoint) configuration."""

    api_key: Optional[str] = Field(
        default=None, description="API key (can also be set via OPENAI_API_KEY env var)"
    )
    base_url: str = Field(
        default="https://api.openai.com/v1", description="API base URL"
    )
    max_retries: int = Field(default=1, description="Maximum number of API call retries")
    timeout: float = Field(default=30.0, description="API request timeout in seconds")


class OpenRouterConfig(BaseModel):
    """OpenRouter-specific configuration."""

    api_key: Optional[str] = Field(
        default=None, description="OpenRouter API key (can also be set via OPENROUTER_API_KEY env var)"
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    site_url: Optional[str] = Field(
        default=None, description="Your site URL for OpenRouter referrer tracking"
    )
    app_name: Optional[str] = Field(
        default="Clone Party Game", description="App name for OpenRouter tracking"
    )
    timeout: float = Field(default=30.0, description="API request timeout in seconds")


class StoreConfig(BaseModel):
    """Shared game document store configuration."""

    backend: Literal["memory", "sqlite"] = Field(default="memory", description="Store backend")
    sqlite_path: str = Field(default="clone_games.db", description="SQLite database file")
    write_retries: int = Field(default=3, description="Attempts for a failed store write")
    retry_base_delay: float = Field(
        default=0.25, description="Initial backoff in seconds, doubled per retry"
    )

    @field_validator("write_retries")
    @classmethod
    def validate_write_retries(cls, v):
        if v < 1:
            raise ValueError("write_retries must be at least 1")
        return v


class SystemConfig(BaseModel):
    """System-wide configuration."""

    openai: OpenAIConfig = Field(
        default_factory=OpenAIConfig, description="OpenAI-specific settings"
    )
    openrouter: OpenRouterConfig = Field(
        default_factory=OpenRouterConfig, description="OpenRouter-specific settings"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class AppConfig(BaseModel):
    """Complete application configuration."""

    game: GameConfig = Field(default_factory=GameConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        import json

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        # Validate required sections
        required_sections = ["game", "generator", "system"]
        missing_sections = [
            section for section in required_sections if section not in data
        ]
        if missing_sections:
            raise ValueError(f"Missing required config sections: {missing_sections}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def get_default_config() -> AppConfig:
    """Load default configuration from clone_config.json, creating it if needed."""
    config_path = Path("clone_config.json")
    if not config_path.exists():
        template_config = get_template_config()
        import json
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(template_config.model_dump(), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        game=GameConfig(
            topic="General",
            vote_tie_break="generated",
            require_master_review=False,
            min_players=2,
        ),
        generator=GeneratorConfig(
            enabled=True,
            model=ModelConfig(
                name="gpt-3.5-turbo",
                provider="openai",
                max_tokens=100,
                temperature=0.8,
            ),
            timeout=10.0,
        ),
        store=StoreConfig(
            backend="memory",
            sqlite_path="clone_games.db",
            write_retries=3,
            retry_base_delay=0.25,
        ),
        system=SystemConfig(
            openai=OpenAIConfig(
                api_key=None,  # Set here or use OPENAI_API_KEY env var
                base_url="https://api.openai.com/v1",
                max_retries=1,
                timeout=30.0,
            ),
            openrouter=OpenRouterConfig(
                api_key=None,  # Set here or use OPENROUTER_API_KEY env var
                base_url="https://openrouter.ai/api/v1",
                site_url=None,
                app_name="Clone Party Game",
                timeout=30.0,
            ),
            log_level="INFO",
        ),
    )
