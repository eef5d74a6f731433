"""Unit tests for Speak2ChatConfig."""

from pathlib import Path

import pytest

from speak2chat.config import Speak2ChatConfig


def write_config(directory, text):
    path = Path(directory) / "speak2chat.yaml"
    path.write_text(text, encoding='utf-8')
    return path


@pytest.mark.unit
class TestSpeak2ChatConfig:
    """Test cases for Speak2ChatConfig class."""

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            Speak2ChatConfig(str(Path(temp_data_dir) / "missing.yaml"))

    def test_empty_file(self, temp_data_dir):
        path = write_config(temp_data_dir, "")

        with pytest.raises(ValueError, match="empty"):
            Speak2ChatConfig(str(path))

    def test_invalid_yaml(self, temp_data_dir):
        path = write_config(temp_data_dir, "audio: [unclosed")

        with pytest.raises(ValueError, match="Invalid YAML"):
            Speak2ChatConfig(str(path))

    def test_non_mapping(self, temp_data_dir):
        path = write_config(temp_data_dir, "- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            Speak2ChatConfig(str(path))

    def test_dot_notation(self, temp_data_dir):
        path = write_config(temp_data_dir, "audio:\n  sample_rate: 22050\n")
        config = Speak2ChatConfig(str(path))

        assert config.get('audio.sample_rate') == 22050
        assert config.get('audio.missing', 7) == 7
        assert config.get('nothing.here') is None

        config.set('recognition.on_device_only', False)
        assert config.get('recognition.on_device_only') is False

    def test_relative_paths_resolved(self, temp_data_dir):
        path = write_config(temp_data_dir, (
            "storage:\n  data_directory: data\n"
            "permissions:\n  consent_file: data/consent.yaml\n"
            "logging:\n  file_path: logs/app.log\n"
        ))
        config = Speak2ChatConfig(str(path))

        assert config.get('storage.data_directory') == str(Path(temp_data_dir) / "data")
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "logs" / "app.log")
        assert config.get_consent_file() == str((Path(temp_data_dir) / "data" / "consent.yaml").absolute())

    def test_default_consent_file(self, temp_data_dir):
        path = write_config(temp_data_dir, "storage:\n  data_directory: data\n")
        config = Speak2ChatConfig(str(path))

        assert config.get_consent_file() == str(Path(config.get_data_directory()) / "consent.yaml")

    def test_credentials_path(self, temp_data_dir):
        (Path(temp_data_dir) / "creds.json").write_text("{}", encoding='utf-8')
        path = write_config(temp_data_dir, "google_cloud:\n  credentials_path: creds.json\n")
        config = Speak2ChatConfig(str(path))

        assert config.get_google_credentials_path() == str((Path(temp_data_dir) / "creds.json").absolute())

    def test_missing_credentials(self, temp_data_dir):
        path = write_config(temp_data_dir, "google_cloud:\n  credentials_path: nope.json\n")
        config = Speak2ChatConfig(str(path))

        assert config.get_google_credentials_path() is None

    def test_defaults_fill_missing_keys(self, temp_data_dir):
        path = write_config(temp_data_dir, "audio:\n  sample_rate: 8000\n")
        config = Speak2ChatConfig(str(path))

        assert config.get('audio.sample_rate') == 8000
        assert config.get('audio.chunk_size') == 1024
        assert config.get('recognition.on_device_only') is True
        assert config.get('storage.data_directory') == str(Path(temp_data_dir) / "data")

    def test_env_var_selects_file(self, temp_data_dir, monkeypatch):
        path = write_config(temp_data_dir, "google_cloud:\n  language: fr-FR\n")
        monkeypatch.setenv("SPEAK2CHAT_CONFIG", str(path))

        config = Speak2ChatConfig()

        assert config.config_file == path
        assert config.get('google_cloud.language') == "fr-FR"
