"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from edenbot.config import (
    DEFAULT_MAX_UNIT_LENGTH,
    DEFAULT_PLACEHOLDER,
    StreamConfig,
    load_config,
)

_VARS = [
    "EDEN_MAX_UNIT_LENGTH",
    "EDEN_EDIT_INTERVAL_MS",
    "EDEN_MIN_CHARS_PER_EDIT",
    "EDEN_PLACEHOLDER",
    "EDEN_HISTORY_LENGTH",
    "EDEN_HISTORY_USERS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Also removes whatever load_dotenv() writes during a test
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)


class TestStreamConfig:
    def test_defaults(self):
        cfg = StreamConfig()
        assert cfg.max_unit_length == 1980
        assert cfg.min_edit_interval_ms == 1500
        assert cfg.min_chars_per_edit == 10
        assert cfg.min_edit_interval == 1.5

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_unit_length": 0},
            {"min_edit_interval_ms": -1},
            {"min_chars_per_edit": -5},
            {"max_unit_length": 2, "placeholder": "too long"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            StreamConfig(**kwargs).validate()


class TestLoadConfig:
    def test_defaults_without_env(self, tmp_path):
        stream, history = load_config(tmp_path / "missing.env")
        assert stream.max_unit_length == DEFAULT_MAX_UNIT_LENGTH
        assert stream.placeholder == DEFAULT_PLACEHOLDER
        assert history.max_messages == 10
        assert history.max_keys is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("EDEN_MAX_UNIT_LENGTH", "500")
        monkeypatch.setenv("EDEN_EDIT_INTERVAL_MS", "250")
        monkeypatch.setenv("EDEN_HISTORY_USERS", "50")
        stream, history = load_config()
        assert stream.max_unit_length == 500
        assert stream.min_edit_interval_ms == 250
        assert history.max_keys == 50

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / "bot.env"
        env_file.write_text("EDEN_MIN_CHARS_PER_EDIT=25\nEDEN_PLACEHOLDER=typing\n", encoding="utf-8")
        stream, _ = load_config(env_file)
        assert stream.min_chars_per_edit == 25
        assert stream.placeholder == "typing"

    def test_malformed_integer(self, monkeypatch):
        monkeypatch.setenv("EDEN_HISTORY_LENGTH", "ten")
        with pytest.raises(ValueError, match="EDEN_HISTORY_LENGTH"):
            load_config()
