"""Configuration settings and data models."""

import json
import shutil
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

WEIGHT_TOLERANCE = 1e-6


class ModelConfig(BaseModel):
    """Configuration for a model serving one debate role."""

    name: str = Field(..., description="Model name (e.g., 'gpt-4o-mini', 'qwen2.5:7b', 'openai/gpt-4o')")
    provider: str = Field(default="openai", description="Model provider (openai, ollama, openrouter)")
    max_tokens: int = Field(default=1500, description="Maximum tokens per response")
    temperature: float = Field(default=0.7, description="Model temperature")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v):
        valid_providers = {"openai", "ollama", "openrouter"}
        if v not in valid_providers:
            raise ValueError(f"Provider must be one of: {valid_providers}")
        return v


class DebateConfig(BaseModel):
    """Shape of a debate session."""

    num_debaters: int = Field(default=3, ge=2, description="Number of debaters (postures) per session")
    cross_examination_rounds: int = Field(
        default=2, ge=0, description="Cross-examination rounds after the exposition round"
    )
    max_concurrent_exchanges: int = Field(
        default=4, ge=1, description="Upper bound on concurrently dispatched question/answer pairs"
    )
    question_concurrency: int = Field(
        default=1, ge=1, description="Questions debated concurrently in multi-question runs (1 = sequential)"
    )
    max_questions: int = Field(default=12, ge=1, description="Maximum generated candidate questions")


class CapabilityConfig(BaseModel):
    """Timeout and retry policy for generative capability calls."""

    timeout_seconds: float = Field(default=90.0, gt=0, description="Timeout per capability call")
    judge_timeout_seconds: float = Field(default=180.0, gt=0, description="Timeout per judge call")
    max_retries: int = Field(default=1, ge=0, description="Retries after the first failed attempt")
    retry_backoff_seconds: float = Field(default=2.0, ge=0, description="Base delay before a retry")


class CriterionConfig(BaseModel):
    """A single weighted judging criterion."""

    name: str
    weight: float = Field(..., ge=0.0, le=1.0)
    description: str = ""


def default_criteria() -> List[CriterionConfig]:
    return [
        CriterionConfig(
            name="Evidence Quality",
            weight=0.30,
            description="Strength and relevance of evidence presented",
        ),
        CriterionConfig(
            name="Logical Coherence",
            weight=0.25,
            description="Clarity and consistency of argumentation",
        ),
        CriterionConfig(
            name="Topic Coverage",
            weight=0.25,
            description="Comprehensiveness in addressing assigned topics",
        ),
        CriterionConfig(
            name="Response Quality",
            weight=0.20,
            description="Directness and substance of answers to questions",
        ),
    ]


class JudgingConfig(BaseModel):
    """Judging system configuration."""

    criteria: List[CriterionConfig] = Field(
        default_factory=default_criteria, description="Weighted scoring criteria"
    )
    tiebreak_criterion: str = Field(
        default="Evidence Quality", description="Criterion used to break weighted-score ties"
    )

    @field_validator("criteria")
    @classmethod
    def validate_weights(cls, v):
        if not v:
            raise ValueError("At least one judging criterion is required")
        names = [c.name for c in v]
        if len(set(names)) != len(names):
            raise ValueError(f"Criterion names must be unique: {names}")
        total = sum(c.weight for c in v)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Criterion weights must sum to 1.0, got {total:.6f}")
        return v


class OllamaConfig(BaseModel):
    """Ollama-specific configuration."""

    keep_alive: Optional[str] = Field(
        default="5m", description="How long to keep models loaded (e.g., '5m', '1h', '0' for immediate unload)"
    )
    repeat_penalty: Optional[float] = Field(
        default=1.1, description="Penalty for repetition in responses"
    )


class OpenAIConfig(BaseModel):
    """OpenAI-specific configuration."""

    api_key: Optional[str] = Field(
        default=None, description="OpenAI API key (can also be set via OPENAI_API_KEY env var)"
    )
    base_url: Optional[str] = Field(default=None, description="Override for OpenAI-compatible endpoints")
    timeout: int = Field(default=120, description="API request timeout in seconds")


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
        default="Research Debate Engine", description="App name for OpenRouter tracking"
    )
    timeout: int = Field(
        default=60, description="API request timeout in seconds"
    )
    min_request_interval: float = Field(
        default=1.0, ge=0, description="Minimum seconds between OpenRouter requests"
    )


class SystemConfig(BaseModel):
    """System-wide configuration."""

    ollama_base_url: str = Field(
        default="http://localhost:11434", description="Ollama API URL"
    )
    ollama: OllamaConfig = Field(
        default_factory=OllamaConfig, description="Ollama-specific settings"
    )
    openai: OpenAIConfig = Field(
        default_factory=OpenAIConfig, description="OpenAI-specific settings"
    )
    openrouter: OpenRouterConfig = Field(
        default_factory=OpenRouterConfig, description="OpenRouter-specific settings"
    )

    database_path: str = Field(default="debates.db", description="SQLite database file")
    documents_dir: str = Field(
        default="documents", description="Directory holding <document_id>.json document contexts"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


REQUIRED_MODEL_ROLES = ("debater", "judge")


class AppConfig(BaseModel):
    """Complete application configuration."""

    debate: DebateConfig
    models: Dict[str, ModelConfig]
    judging: JudgingConfig
    capabilities: CapabilityConfig = Field(default_factory=CapabilityConfig)
    system: SystemConfig

    @model_validator(mode="after")
    def validate_model_roles(self):
        missing = [role for role in REQUIRED_MODEL_ROLES if role not in self.models]
        if missing:
            raise ValueError(f"Missing model roles: {missing}")
        return self

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        # Validate required sections
        required_sections = ["debate", "models", "judging", "system"]
        missing_sections = [
            section for section in required_sections if section not in data
        ]
        if missing_sections:
            raise ValueError(f"Missing required config sections: {missing_sections}")

        if not data.get("models"):
            raise ValueError(
                "Config must include the debater and judge models in 'models' section"
            )

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
                sort_keys=False,
            )


def get_default_config() -> AppConfig:
    """Load default configuration from debate_config.json, creating it if needed."""
    config_path = Path("debate_config.json")
    if not config_path.exists():
        example_path = Path("debate_config.example.json")
        if example_path.exists():
            shutil.copy2(example_path, config_path)
        else:
            template_config = get_template_config()
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(template_config.model_dump(), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        debate=DebateConfig(),
        models={
            "debater": ModelConfig(
                name="gpt-4o-mini",
                provider="openai",
                max_tokens=1500,
                temperature=0.7,
            ),
            "moderator": ModelConfig(
                name="gpt-4o-mini",
                provider="openai",
                max_tokens=2000,
                temperature=0.7,
            ),
            "judge": ModelConfig(
                name="gpt-4o-mini",
                provider="openai",
                max_tokens=3000,
                temperature=0.3,  # Lower temperature for more consistent judging
            ),
        },
        judging=JudgingConfig(),
        capabilities=CapabilityConfig(),
        system=SystemConfig(
            ollama_base_url="http://localhost:11434",
            openai=OpenAIConfig(api_key=None, timeout=120),  # Or use OPENAI_API_KEY env var
            openrouter=OpenRouterConfig(api_key=None, timeout=60),
            database_path="debates.db",
            documents_dir="documents",
            log_level="INFO",
        ),
    )
