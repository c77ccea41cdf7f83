"""Tests for config loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from aiengine import config as config_module
from aiengine.config import EngineConfig, ScheduleConfig, get_config, load_config, reload_config

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(autouse=True)
def _restore_config_cache():
    saved = (config_module._config, config_module._config_path)
    yield
    config_module._config, config_module._config_path = saved


def test_defaults_are_valid():
    config = EngineConfig()
    assert config.router.length_threshold == 400
    assert config.backends.deliberate.provider == "anthropic"
    assert config.backends.fast.provider == "openai"
    assert "read_file" in config.prompt.system_preamble
    assert "propose_edit" in config.prompt.system_preamble


def test_unknown_provider_is_rejected():
    with pytest.raises(ValidationError, match="unknown provider 'cohere'"):
        EngineConfig(backends={"fast": {"provider": "cohere", "model": "x"}})


@pytest.mark.parametrize(
    "schedule",
    [
        {"frequency": "weekly", "hour": 3},
        {"frequency": "monthly", "hour": 3},
        {"frequency": "daily", "hour": 24},
        {"frequency": "hourly", "hour": 1},
    ],
)
def test_invalid_schedules_are_rejected(schedule):
    with pytest.raises(ValidationError):
        ScheduleConfig(**schedule)


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "router:\n"
        "  length_threshold: 10\n"
        "  complex_keywords: [Design]\n"
        "backends:\n"
        "  deliberate: {provider: echo, model: echo}\n"
        "  fast: {provider: echo, model: echo}\n"
        "retrieval:\n"
        "  provider: none\n",
        encoding="utf-8",
    )
    config = load_config(str(path))

    assert config.router.length_threshold == 10
    assert config.router.complex_keywords == ["design"]
    assert config.backends.fast.provider == "echo"
    assert get_config() is config


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == EngineConfig()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_reload_rereads_the_same_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("rate_limit: {requests_per_minute: 5}\n", encoding="utf-8")
    load_config(str(path))
    path.write_text("rate_limit: {requests_per_minute: 7}\n", encoding="utf-8")

    assert reload_config().rate_limit.requests_per_minute == 7


def test_shipped_config_is_valid():
    config = load_config(str(REPO_ROOT / "config.yaml"))
    assert config.router.complex_keywords
    assert config.ingest_schedules == []
