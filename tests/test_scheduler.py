"""Tests for scheduled re-ingestion."""

from __future__ import annotations

import logging

import pytest
from apscheduler.triggers.cron import CronTrigger

from aiengine import scheduler as scheduler_module
from aiengine.config import EngineConfig, IngestScheduleConfig, ScheduleConfig
from aiengine.errors import IngestionError
from aiengine.runtime import build_runtime
from aiengine.scheduler import build_trigger, run_scheduled_ingest, setup_scheduler


def _config(**overrides) -> EngineConfig:
    return EngineConfig(
        backends={
            "deliberate": {"provider": "echo", "model": "echo"},
            "fast": {"provider": "echo", "model": "echo"},
        },
        retrieval={"provider": "none"},
        audit={"enabled": False},
        **overrides,
    )


@pytest.mark.parametrize(
    "schedule",
    [
        ScheduleConfig(frequency="daily", hour=2),
        ScheduleConfig(frequency="weekly", hour=2, day_of_week="mon"),
        ScheduleConfig(frequency="monthly", hour=2, day_of_month=1),
    ],
)
def test_build_trigger(schedule):
    assert isinstance(build_trigger(schedule), CronTrigger)


def test_setup_scheduler_adds_one_job_per_schedule():
    jobs = [
        IngestScheduleConfig(
            repo_url="https://example.com/a.git",
            workspace="a",
            schedule=ScheduleConfig(frequency="daily", hour=1),
        ),
        IngestScheduleConfig(
            repo_url="https://example.com/b.git",
            workspace="b",
            schedule=ScheduleConfig(frequency="weekly", hour=4, day_of_week="sun"),
        ),
    ]
    runtime = build_runtime(_config(ingest_schedules=jobs))
    scheduler = setup_scheduler(runtime)

    assert sorted(job.id for job in scheduler.get_jobs()) == ["ingest_a_0", "ingest_b_1"]


@pytest.mark.asyncio
async def test_failed_scheduled_ingest_is_logged_not_raised(monkeypatch, caplog):
    async def failing_ingest(*args, **kwargs):
        raise IngestionError("git clone failed (128): nope")

    monkeypatch.setattr(scheduler_module, "ingest_repo", failing_ingest)
    job = IngestScheduleConfig(
        repo_url="https://example.com/a.git",
        schedule=ScheduleConfig(frequency="daily", hour=1),
    )

    with caplog.at_level(logging.ERROR, logger="aiengine.scheduler"):
        await run_scheduled_ingest(job, build_runtime(_config()))

    assert "git clone failed" in caplog.text
