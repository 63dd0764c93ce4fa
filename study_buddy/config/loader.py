"""
Configuration management and loading.

Handles tutor settings: token budgets, session windows, retention and the
reply model.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class TokenConfig:
    """Per-user token budget settings."""
    default_limit: int = 5000
    max_input_tokens: int = 1000

    def __post_init__(self):
        """Validate token limits are positive."""
        if self.default_limit <= 0:
            raise ValueError("default_limit must be > 0")
        if self.max_input_tokens <= 0:
            raise ValueError("max_input_tokens must be > 0")


@dataclass(frozen=True)
class SessionConfig:
    """Conversation continuity and compaction settings."""
    recency_window_minutes: float = 5
    compaction_threshold: int = 14
    keep_recent: int = 10

    def __post_init__(self):
        """Validate session windows."""
        if self.recency_window_minutes <= 0:
            raise ValueError("recency_window_minutes must be > 0")
        if self.keep_recent <= 0:
            raise ValueError("keep_recent must be > 0")
        if self.compaction_threshold < self.keep_recent:
            raise ValueError("compaction_threshold must be >= keep_recent")


@dataclass(frozen=True)
class RetentionConfig:
    """Garbage collection settings for conversations and transcripts."""
    conversation_days: float = 7
    max_conversations_per_user: int = 50
    transcript_days: float = 30
    sweep_interval_minutes: float = 60

    def __post_init__(self):
        """Validate retention values are positive."""
        for name in ("conversation_days", "max_conversations_per_user",
                     "transcript_days", "sweep_interval_minutes"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")


@dataclass(frozen=True)
class ModelConfig:
    """Reply model used by the generation capability."""
    name: str = "gpt-4o-mini"
    max_tokens: int = 180
    timeout_seconds: float = 30.0
    base_url: Optional[str] = None
    api_key_env: str = "OPENAI_API_KEY"

    def __post_init__(self):
        """Validate model settings."""
        if not self.name or not self.name.strip():
            raise ValueError("model name cannot be empty")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class DefaultsConfig:
    """Request defaults applied when the client omits them."""
    curriculum: str = "NSW"
    year_level: int = 7

    def __post_init__(self):
        if self.year_level <= 0:
            raise ValueError("year_level must be > 0")


@dataclass(frozen=True)
class TutorConfig:
    """Complete tutor configuration."""
    tokens: TokenConfig = field(default_factory=TokenConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)


_SECTIONS = {
    'tokens': TokenConfig,
    'sessions': SessionConfig,
    'retention': RetentionConfig,
    'model': ModelConfig,
    'defaults': DefaultsConfig,
}

_STRING_KEYS = {'name', 'base_url', 'api_key_env', 'curriculum'}


def default_config() -> TutorConfig:
    """Return the built-in configuration."""
    return TutorConfig()


def load_tutor_config(path: str) -> TutorConfig:
    """Load and validate tutor configuration from a YAML file.

    Every section is optional; missing sections and keys fall back to the
    built-in defaults. Unknown sections or keys are rejected so that a typo
    never silently leaves a limit at its default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated TutorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Tutor config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    unknown_keys = set(raw_config.keys()) - set(_SECTIONS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {
        name: _parse_section(raw_config.get(name), name, section_cls)
        for name, section_cls in _SECTIONS.items()
    }
    return TutorConfig(**sections)


def _parse_section(data: Optional[Dict[str, Any]], path: str, section_cls):
    """Parse one configuration section into its dataclass.

    Args:
        data: Raw section mapping (None when the section is absent)
        path: Section name for error messages
        section_cls: Dataclass to build

    Returns:
        Validated section instance

    Raises:
        ValueError: If the section is invalid
    """
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    allowed_keys = set(section_cls.__dataclass_fields__)
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    values = {}
    for key, value in data.items():
        if key in _STRING_KEYS:
            if value is not None and not isinstance(value, str):
                raise ValueError(f"'{key}' in {path} must be a string")
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'{key}' in {path} must be a number")
        values[key] = value

    return section_cls(**values)
