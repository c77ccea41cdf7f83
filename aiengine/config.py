"""Configuration loader — reads config.yaml, validates with Pydantic.

Routing thresholds, backend selection per tier, the tool root, retrieval,
ingestion, audit, and rate-limit settings all live here. Provider API keys
come from the environment, never from the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PREAMBLE = (
    "You are an AI coding assistant with tools and repository memory.\n"
    "Available tools:\n"
    '- read_file: {"tool": "read_file", "params": {"file": "<relative path>"}}\n'
    '- propose_edit: {"tool": "propose_edit", "params": {"file": "<relative path>", '
    '"newContent": "<full new file text>"}}\n'
    "If a tool is needed, respond ONLY with the JSON object and nothing else."
)


class RouterConfig(BaseModel):
    """Static heuristic for picking the deliberate vs fast backend."""

    length_threshold: int = Field(default=400, ge=0)
    complex_keywords: list[str] = ["design"]

    @field_validator("complex_keywords")
    @classmethod
    def normalise_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip().lower() for k in v if k.strip()]


class BackendConfig(BaseModel):
    """One model backend: provider name and model settings."""

    provider: str
    model: str
    max_tokens: int = 2048
    temperature: float | None = None


class BackendsConfig(BaseModel):
    deliberate: BackendConfig = BackendConfig(
        provider="anthropic", model="claude-sonnet-4-20250514"
    )
    fast: BackendConfig = BackendConfig(provider="openai", model="gpt-4o-mini")


class PromptConfig(BaseModel):
    system_preamble: str = DEFAULT_SYSTEM_PREAMBLE


class ToolsConfig(BaseModel):
    root: str = "."  # workspace root that read_file / propose_edit resolve against


class RetrievalConfig(BaseModel):
    provider: Literal["memory", "none"] = "memory"
    embedding_model: str = "text-embedding-3-small"
    top_k: int = Field(default=5, ge=1)


class IngestConfig(BaseModel):
    workdir: str = "/tmp/aiengine"
    extensions: list[str] = [
        ".ts", ".js", ".md", ".json", ".py", ".txt", ".toml", ".yaml", ".yml",
    ]
    max_file_bytes: int = 200_000


class AuditConfig(BaseModel):
    enabled: bool = True
    queue_size: int = Field(default=1000, ge=1)


class RateLimitConfig(BaseModel):
    requests_per_minute: int = Field(default=60, ge=1)


class ScheduleConfig(BaseModel):
    """Cron-style schedule for re-ingestion jobs."""

    frequency: Literal["daily", "weekly", "monthly"]
    hour: int = Field(ge=0, le=23)
    day_of_week: str | None = None  # required for weekly (e.g. "mon", "0")
    day_of_month: int | None = None  # required for monthly (1-31)

    @model_validator(mode="after")
    def validate_schedule_fields(self) -> ScheduleConfig:
        if self.frequency == "weekly" and self.day_of_week is None:
            raise ValueError("day_of_week is required for weekly schedules")
        if self.frequency == "monthly" and self.day_of_month is None:
            raise ValueError("day_of_month is required for monthly schedules")
        return self


class IngestScheduleConfig(BaseModel):
    """A repository that is re-ingested on a schedule."""

    repo_url: str
    workspace: str = "default"
    schedule: ScheduleConfig


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    # Auth & CORS
    api_key: str | None = None
    allowed_origins: list[str] = ["*"]

    router: RouterConfig = RouterConfig()
    backends: BackendsConfig = BackendsConfig()
    prompt: PromptConfig = PromptConfig()
    tools: ToolsConfig = ToolsConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    ingest: IngestConfig = IngestConfig()
    audit: AuditConfig = AuditConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    ingest_schedules: list[IngestScheduleConfig] = []

    @model_validator(mode="after")
    def validate_providers(self) -> EngineConfig:
        from aiengine.models.registry import PROVIDER_REGISTRY

        for tier, backend in (
            ("deliberate", self.backends.deliberate),
            ("fast", self.backends.fast),
        ):
            if backend.provider not in PROVIDER_REGISTRY:
                raise ValueError(
                    f"Backend '{tier}' references unknown provider '{backend.provider}'. "
                    f"Available: {sorted(PROVIDER_REGISTRY.keys())}"
                )
        return self


# ---------------------------------------------------------------------------
# Module-level config cache
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_path: str = "config.yaml"


def load_config(path: str = "config.yaml") -> EngineConfig:
    """Read config.yaml from disk, validate, and cache."""
    global _config, _config_path
    _config_path = path

    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file.resolve()}")

    raw = yaml.safe_load(config_file.read_text()) or {}
    _config = EngineConfig(**raw)

    logger.info(
        f"Loaded config: "
        f"deliberate={_config.backends.deliberate.provider}/{_config.backends.deliberate.model}, "
        f"fast={_config.backends.fast.provider}/{_config.backends.fast.model}, "
        f"retrieval={_config.retrieval.provider}"
    )
    return _config


def get_config() -> EngineConfig:
    """Return cached config. Raises if not yet loaded."""
    if _config is None:
        raise RuntimeError("Config not loaded, call load_config() first")
    return _config


def reload_config() -> EngineConfig:
    """Re-read config from disk. Called by /reload endpoint."""
    logger.info(f"Reloading config from {_config_path}")
    return load_config(_config_path)
