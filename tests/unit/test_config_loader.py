"""Unit tests for configuration loading."""

import os
import stat
from pathlib import Path

import pytest

from limnl.config import load_config
from limnl.models.config import ProviderKind


ENV_VARS = (
    "LIMNL_LLM_PROVIDER",
    "LIMNL_OLLAMA_URL",
    "LIMNL_OLLAMA_MODEL",
    "LIMNL_OPENAI_API_KEY",
    "LIMNL_OPENAI_MODEL",
    "LIMNL_ANTHROPIC_API_KEY",
    "LIMNL_ANTHROPIC_MODEL",
    "LIMNL_DATABASE_PATH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(path: Path, text: str, mode: int = stat.S_IRUSR | stat.S_IWUSR) -> Path:
    path.write_text(text)
    os.chmod(path, mode)
    return path


class TestLoadConfig:
    """Test loading configuration from YAML."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a missing file yields a disabled provider."""
        config = load_config(tmp_path / "absent.yaml")

        assert config.llm.provider == ProviderKind.DISABLED
        assert config.database.path.name == "dreams.db"

    def test_default_path_under_home(self, tmp_path, monkeypatch):
        """Test the default location is read from the home directory."""
        monkeypatch.setenv("HOME", str(tmp_path))
        config_dir = tmp_path / ".config" / "limnl"
        config_dir.mkdir(parents=True)
        write_config(config_dir / "config.yaml", "llm:\n  provider: ollama\n")

        config = load_config()

        assert config.llm.provider == ProviderKind.OLLAMA

    def test_valid_file(self, tmp_path):
        """Test values from the file are applied."""
        path = write_config(tmp_path / "config.yaml", f"""
llm:
  provider: anthropic
  anthropic_api_key: sk-ant-file
  anthropic_model: claude-sonnet
database:
  path: {tmp_path / "journal.db"}
""")

        config = load_config(path)

        assert config.llm.provider == ProviderKind.ANTHROPIC
        assert config.llm.anthropic_api_key == "sk-ant-file"
        assert config.database.path == tmp_path / "journal.db"

    def test_camel_case_keys_accepted(self, tmp_path):
        path = write_config(tmp_path / "config.yaml", "llm:\n  provider: ollama\n  ollamaUrl: http://gpu-box:11434\n")

        assert load_config(path).llm.ollama_url == "http://gpu-box:11434"

    def test_empty_file(self, tmp_path):
        """Test an empty file is the same as no file."""
        path = write_config(tmp_path / "config.yaml", "")

        assert load_config(path).llm.provider == ProviderKind.DISABLED

    @pytest.mark.parametrize("mode", [0o640, 0o604, 0o644])
    def test_permissive_permissions_rejected(self, tmp_path, mode):
        """Test group- or world-accessible files are refused."""
        path = write_config(tmp_path / "config.yaml", "llm:\n  provider: ollama\n", mode=mode)

        with pytest.raises(PermissionError) as exc_info:
            load_config(path)

        assert f"chmod 600 {path}" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path / "config.yaml", "llm: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(path)

    def test_invalid_provider(self, tmp_path):
        """Test validation failures are reported as ValueError."""
        path = write_config(tmp_path / "config.yaml", "llm:\n  provider: gemini\n")

        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config(path)


class TestEnvironmentOverrides:
    """Test LIMNL_* environment overrides."""

    def test_env_without_file(self, tmp_path, monkeypatch):
        """Test environment variables alone configure the provider."""
        monkeypatch.setenv("LIMNL_LLM_PROVIDER", "openai")
        monkeypatch.setenv("LIMNL_OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("LIMNL_DATABASE_PATH", str(tmp_path / "env.db"))

        config = load_config(tmp_path / "absent.yaml")

        assert config.llm.provider == ProviderKind.OPENAI
        assert config.llm.openai_api_key == "sk-env"
        assert config.database.path == tmp_path / "env.db"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test environment values win over file values."""
        path = write_config(tmp_path / "config.yaml", "llm:\n  provider: ollama\n  ollama_model: mistral\n")
        monkeypatch.setenv("LIMNL_OLLAMA_MODEL", "phi")

        config = load_config(path)

        assert config.llm.provider == ProviderKind.OLLAMA
        assert config.llm.ollama_model == "phi"
