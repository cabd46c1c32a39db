import os
import pytest
from pathlib import Path
from pydantic import ValidationError

from notex.config import ENV_PREFIX, Settings
from notex.services.store import DocumentStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test without NOTEX_* variables from the outer environment"""
    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIX):
            monkeypatch.delenv(key)


class TestSettings:
    """Tests for defaults and NOTEX_* overrides"""

    def test_defaults(self):
        settings = Settings()

        assert settings.storage_root == Path.home() / ".notex" / "Notes"
        assert settings.note_suffix == ".json"
        assert settings.canvas_suffix == ".canvas.json"
        assert settings.throttle_interval == 0.5
        assert settings.autosave_delay == 10.0

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTEX_STORAGE_ROOT", str(tmp_path))
        monkeypatch.setenv("NOTEX_AUTOSAVE_DELAY", "2.5")
        monkeypatch.setenv("NOTEX_LOG_LEVEL", "debug")
        monkeypatch.setenv("UNRELATED", "ignored")

        settings = Settings()

        assert settings.storage_root == tmp_path
        assert settings.autosave_delay == 2.5
        assert settings.log_level == "DEBUG"

    def test_lowercase_variable_names(self, monkeypatch):
        monkeypatch.setenv("notex_port", "9001")
        assert Settings().port == 9001

    def test_root_is_user_expanded(self, monkeypatch):
        monkeypatch.setenv("NOTEX_STORAGE_ROOT", "~/elsewhere")
        assert Settings().storage_root == Path.home() / "elsewhere"

    def test_invalid_suffix_rejected(self, monkeypatch):
        monkeypatch.setenv("NOTEX_NOTE_SUFFIX", "json")
        with pytest.raises(ValidationError):
            Settings()

    def test_non_positive_timing_rejected(self, monkeypatch):
        monkeypatch.setenv("NOTEX_THROTTLE_INTERVAL", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_store_from_settings(self, tmp_path):
        """The store picks up root, suffixes and placeholders"""
        settings = Settings(storage_root=tmp_path, canvas_suffix=".board.json", leaf_placeholder="Blank")
        store = DocumentStore.from_settings(settings)

        assert store.root == tmp_path
        assert store.scanner.classify("x.board.json") == ("x", "canvas")
        assert store.leaf_placeholder == "Blank"
