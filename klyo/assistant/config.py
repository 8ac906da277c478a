"""Configuration management for the Klyo assistant."""

import os
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_CONFIG_CANDIDATES = (
    Path("klyo.yaml"),
    Path.home() / ".config" / "klyo" / "config.yaml",
)


class LLMConfig(BaseModel):
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.3-70b-versatile"
    api_key: Optional[str] = None
    api_key_env: str = "KLYO_GROQ_KEY"
    timeout_seconds: float = 20.0
    max_retries: int = 1
    temperature: float = 0.2

    @field_validator('timeout_seconds')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    @field_validator('max_retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    def resolve_api_key(self) -> Optional[str]:
        """Inline key first, then the environment. Empty strings count as missing."""
        key = self.api_key or os.environ.get(self.api_key_env, "")
        key = key.strip()
        return key or None


class RetrievalConfig(BaseModel):
    shortlist_size: int = 15
    context_limit: int = 50
    max_expansions: int = 3
    vector_weight: float = 10.0
    title_boost: float = 2.0
    min_term_length: int = 3

    # Recency policy (intent-aware)
    today_boost: float = 5.0
    upcoming_boost: float = 2.0
    upcoming_window_days: int = 3
    past_penalty: float = -10.0
    past_boost: float = 5.0

    @field_validator('shortlist_size', 'context_limit')
    @classmethod
    def validate_limits(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limits must be at least 1")
        return v


class ReflectionConfig(BaseModel):
    enabled: bool = True
    score_threshold: float = 80.0
    min_answer_chars: int = 100
    min_question_chars: int = 20

    @field_validator('score_threshold')
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("score_threshold must be between 0 and 100")
        return v


class AssistantConfig(BaseModel):
    default_persona: str = "Mr. Crock"


class Config(BaseModel):
    """Main configuration for the schedule assistant."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    reflection: ReflectionConfig = Field(default_factory=ReflectionConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from YAML.

        An explicit path must exist. Without one, the default locations are
        tried and built-in defaults are used when none is present.
        """
        if config_path is None:
            for candidate in DEFAULT_CONFIG_CANDIDATES:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.debug("No config file found, using defaults")
                return cls()

        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file. The inline API key is never written."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump()
        data["llm"]["api_key"] = None
        with open(config_path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
