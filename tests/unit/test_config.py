"""Tests for configuration module."""

import tempfile
from pathlib import Path

from lenslore.config import AppConfig, Config, GenAIConfig, load_config


class TestConfig:
    """Tests for Config class."""

    def test_default_config(self):
        """Test creating default configuration."""
        config = Config()

        assert config.app.name == "lenslore"
        assert config.app.mode == "development"
        assert config.mock_mode is False
        assert config.genai.voice == "Aoede"
        assert config.narration.max_chars == 500
        assert config.audio.sample_rate == 24000
        assert config.audio.channels == 1

    def test_config_from_dict(self):
        """Test creating config from dictionary."""
        config = Config(
            app=AppConfig(mode="production"),
            genai=GenAIConfig(vision_model="gemini-test", vision_timeout_seconds=5),
            mock_mode=True,
        )

        assert config.app.mode == "production"
        assert config.genai.vision_model == "gemini-test"
        assert config.genai.vision_timeout_seconds == 5
        assert config.mock_mode is True

    def test_config_from_yaml(self):
        """Test loading config from YAML."""
        yaml_content = """
app:
  mode: production
genai:
  voice: Puck
  details_timeout_seconds: 12
narration:
  max_chars: 300
"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(yaml_content)

            config = Config.from_yaml(path)

            assert config.app.mode == "production"
            assert config.genai.voice == "Puck"
            assert config.genai.details_timeout_seconds == 12
            assert config.narration.max_chars == 300

    def test_from_missing_yaml_gives_defaults(self, tmp_path):
        config = Config.from_yaml(tmp_path / "absent.yaml")
        assert config.genai.tts_model == "gemini-2.5-flash-preview-tts"

    def test_masked_hides_api_key(self):
        config = Config(genai=GenAIConfig(api_key="secret"))
        assert config.masked()["genai"]["api_key"] == "***"
        assert config.genai.api_key == "secret"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default(self, tmp_path, monkeypatch):
        """Test loading default config when no file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        for var in ("LENSLORE_API_KEY", "API_KEY", "GEMINI_API_KEY", "LENSLORE_MOCK_MODE"):
            monkeypatch.delenv(var, raising=False)

        config = load_config(config_path="/nonexistent/path.yaml")

        assert config.app.name == "lenslore"
        assert config.genai.api_key is None
        assert config.mock_mode is False

    def test_load_with_env_override(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.delenv("LENSLORE_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("LENSLORE_MOCK_MODE", "1")
        monkeypatch.setenv("API_KEY", "test-key")

        config = load_config()

        assert config.mock_mode is True
        assert config.genai.api_key == "test-key"

    def test_prefixed_key_wins(self, monkeypatch):
        monkeypatch.setenv("LENSLORE_API_KEY", "prefixed")
        monkeypatch.setenv("API_KEY", "plain")

        assert load_config().genai.api_key == "prefixed"

    def test_load_from_file(self, tmp_path):
        """Test loading config from file."""
        path = tmp_path / "lenslore.yaml"
        path.write_text("genai:\n  vision_model: file-model\n")

        config = load_config(config_path=path)

        assert config.genai.vision_model == "file-model"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test LENSLORE_* variables win over values from the file."""
        path = tmp_path / "lenslore.yaml"
        path.write_text("genai:\n  voice: Aoede\n  details_timeout_seconds: 12\n")
        monkeypatch.setenv("LENSLORE_GENAI__VOICE", "Puck")

        config = load_config(config_path=path)

        assert config.genai.voice == "Puck"
        assert config.genai.details_timeout_seconds == 12
