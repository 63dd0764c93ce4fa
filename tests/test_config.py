"""
Unit tests for configuration loading and validation.

Tests strict validation and defaults for tutor configs.
"""

import os
import tempfile

import pytest
import yaml

from study_buddy.config.loader import (
    load_tutor_config,
    default_config,
    ModelConfig,
    RetentionConfig,
    SessionConfig,
    TokenConfig,
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_path = self._write_config({
            "tokens": {"default_limit": 8000, "max_input_tokens": 500},
            "sessions": {"recency_window_minutes": 10},
            "retention": {"conversation_days": 3, "max_conversations_per_user": 20},
            "model": {"name": "gpt-4o", "max_tokens": 200},
            "defaults": {"curriculum": "VIC", "year_level": 8},
        })

        config = load_tutor_config(config_path)

        assert config.tokens.default_limit == 8000
        assert config.tokens.max_input_tokens == 500
        assert config.sessions.recency_window_minutes == 10
        assert config.sessions.compaction_threshold == 14
        assert config.retention.conversation_days == 3
        assert config.retention.max_conversations_per_user == 20
        assert config.retention.transcript_days == 30
        assert config.model.name == "gpt-4o"
        assert config.model.api_key_env == "OPENAI_API_KEY"
        assert config.defaults.curriculum == "VIC"
        assert config.defaults.year_level == 8

    def test_missing_sections_use_defaults(self):
        """Test that omitted sections fall back to built-in values."""
        config_path = self._write_config({"tokens": {"default_limit": 1234}})

        config = load_tutor_config(config_path)

        assert config.tokens.default_limit == 1234
        assert config.sessions == SessionConfig()
        assert config.retention == RetentionConfig()
        assert config.model == ModelConfig()

    def test_default_config_values(self):
        """Test built-in defaults match the documented behaviour."""
        config = default_config()

        assert config.tokens.default_limit == 5000
        assert config.tokens.max_input_tokens == 1000
        assert config.sessions.recency_window_minutes == 5
        assert config.sessions.keep_recent == 10
        assert config.retention.max_conversations_per_user == 50
        assert config.model.max_tokens == 180

    def test_missing_file_raises_error(self):
        """Test that a missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Tutor config file not found"):
            load_tutor_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_invalid_yaml_raises_error(self):
        """Test that malformed YAML raises YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("tokens: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_tutor_config(config_path)

    def test_empty_config_raises_error(self):
        """Test that an empty file is rejected."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("")

        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_tutor_config(config_path)

    def test_non_dict_root_raises_error(self):
        """Test that a list at the root is rejected."""
        config_path = self._write_config(["tokens", "sessions"])

        with pytest.raises(ValueError, match="Configuration root must be a dictionary"):
            load_tutor_config(config_path)

    def test_unknown_section_raises_error(self):
        """Test that unknown top-level keys are rejected."""
        config_path = self._write_config({"tokens": {}, "budget": {"daily": 10}})

        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_tutor_config(config_path)

    def test_unknown_key_in_section_raises_error(self):
        """Test that a typo inside a section is rejected."""
        config_path = self._write_config({"tokens": {"default_limt": 100}})

        with pytest.raises(ValueError, match="Unknown keys in tokens"):
            load_tutor_config(config_path)

    def test_non_numeric_value_raises_error(self):
        """Test that strings are rejected for numeric settings."""
        config_path = self._write_config({"tokens": {"default_limit": "lots"}})

        with pytest.raises(ValueError, match="'default_limit' in tokens must be a number"):
            load_tutor_config(config_path)

    def test_boolean_value_raises_error(self):
        """Test that booleans are not accepted as numbers."""
        config_path = self._write_config({"retention": {"transcript_days": True}})

        with pytest.raises(ValueError, match="must be a number"):
            load_tutor_config(config_path)

    def test_non_string_model_name_raises_error(self):
        """Test that string settings must be strings."""
        config_path = self._write_config({"model": {"name": 42}})

        with pytest.raises(ValueError, match="'name' in model must be a string"):
            load_tutor_config(config_path)

    def test_section_must_be_mapping(self):
        """Test that a scalar section is rejected."""
        config_path = self._write_config({"sessions": 5})

        with pytest.raises(ValueError, match="'sessions' must be a dictionary"):
            load_tutor_config(config_path)

    def test_negative_limit_raises_error(self):
        """Test that non-positive limits fail validation."""
        config_path = self._write_config({"tokens": {"default_limit": -1}})

        with pytest.raises(ValueError, match="default_limit must be > 0"):
            load_tutor_config(config_path)


class TestConfigDataclasses:
    """Test section validation on direct construction."""

    def test_token_config_rejects_zero_input_limit(self):
        with pytest.raises(ValueError, match="max_input_tokens must be > 0"):
            TokenConfig(max_input_tokens=0)

    def test_session_threshold_must_cover_keep_recent(self):
        """Test that compaction cannot keep more turns than it triggers at."""
        with pytest.raises(ValueError, match="compaction_threshold must be >= keep_recent"):
            SessionConfig(compaction_threshold=5, keep_recent=10)

    def test_retention_rejects_zero_cap(self):
        with pytest.raises(ValueError, match="max_conversations_per_user must be > 0"):
            RetentionConfig(max_conversations_per_user=0)

    def test_model_rejects_blank_name(self):
        with pytest.raises(ValueError, match="model name cannot be empty"):
            ModelConfig(name="  ")

    def test_configs_are_frozen(self):
        """Test that configuration objects are immutable."""
        config = TokenConfig()
        with pytest.raises(Exception):
            config.default_limit = 1
