import pytest

from config import CONFIG_ENV_VAR, ConfigurationManager, get_config


def test_dot_notation_access():
    assert get_config("audit.max_entries") == 1000
    assert get_config("ocr.tesseract.lang") == "jpn"
    assert get_config("extraction.amount.min") == 100


def test_missing_key_returns_default():
    assert get_config("no.such.key", "fallback") == "fallback"
    assert get_config("audit.max_entries.deeper") is None


def test_singleton():
    assert ConfigurationManager() is ConfigurationManager()


def test_relative_paths_are_resolved():
    from pathlib import Path

    assert Path(get_config("paths.data_dir")).is_absolute()


def test_environment_override(config_file, monkeypatch):
    path = config_file("audit:\n  max_entries: 5\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    ConfigurationManager.reset()

    assert get_config("audit.max_entries") == 5
    assert get_config("ocr.engine", "tesseract") == "tesseract"


def test_empty_file_gives_defaults(config_file, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file("")))
    ConfigurationManager.reset()

    assert get_config("audit.max_entries", 1000) == 1000


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigurationManager(str(tmp_path / "missing.yaml"))


def test_configured_capacity_is_used(config_file, monkeypatch, memory_store):
    from invoice_scan.audit import AuditLog

    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file("audit:\n  max_entries: 2\n")))
    ConfigurationManager.reset()

    assert AuditLog(memory_store).capacity == 2
