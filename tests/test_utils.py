import json
import logging
from datetime import date

import pytest

from videosync.db.migrate import run_migrations, split_statements
from videosync.db.settings import SettingsStore
from videosync.ingest import load_brands
from videosync.ingest.errors import Snoozed, SyncError
from videosync.ingest.models import Brand, SyncStats, SyncTuning
from videosync.jobs import celery_app
from videosync.utils.dates import window_bounds
from videosync.utils.events import EventPublisher, RedisEventPublisher, channel_for, publisher_from_env
from videosync.utils.log_sampling import SampledLogger
from videosync.utils.rate_limit import RequestPacer
from videosync.utils.retry import backoff_delay, retry_async


def test_window_bounds_include_the_run_date():
    assert window_bounds(30, date(2024, 1, 1)) == ("2023-12-02", "2024-01-02")
    assert window_bounds(90, date(2024, 1, 1)) == ("2023-10-03", "2024-01-02")


def test_sampled_logger_bounds_output(caplog):
    sampled = SampledLogger(logging.getLogger("videosync.test"), head=2, every=5)
    with caplog.at_level(logging.WARNING):
        logged = [sampled.warning("row %s skipped", n) for n in range(1, 11)]
    assert logged == [True, True, False, False, True, False, False, False, False, True]
    assert sampled.count == 10
    assert len(caplog.records) == 4
    assert caplog.records[-1].getMessage() == "row 10 skipped (occurrence 10)"


def test_backoff_delay():
    assert [backoff_delay(0.5, n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_async_gives_up_after_attempts():
    calls = []

    async def flaky():
        calls.append(1)
        raise OSError("boom")

    with pytest.raises(OSError):
        await retry_async(flaky, attempts=3, base_delay=0)()
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_other_errors():
    calls = []

    async def broken():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await retry_async(broken, attempts=3, base_delay=0)()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_disabled_pacer_does_not_wait():
    pacer = RequestPacer(rate=0)
    await pacer.wait()
    await pacer.wait()


def test_sync_tuning_from_env(monkeypatch):
    monkeypatch.setenv("VIDEO_SYNC_PAGE_SIZE", "50")
    monkeypatch.setenv("VIDEO_SYNC_WINDOWS", "7, 30,")
    tuning = SyncTuning.from_env()
    assert tuning.page_size == 50
    assert tuning.windows == (7, 30)
    assert tuning.cooldown_seconds == 600


def test_settings_round_trip(engine, clock):
    settings = SettingsStore(engine, clock=clock)
    assert settings.get_last_rate_limited_at(1) is None
    assert settings.record_rate_limit(1) == 1
    assert settings.record_rate_limit(1) == 2
    assert settings.record_rate_limit(2) == 1
    assert settings.get_last_rate_limited_at(1) == clock.now
    settings.reset_rate_limit_streak(1)
    assert settings.get_rate_limit_streak(1) == 0
    assert settings.get_rate_limit_streak(2) == 1


def test_split_statements_skips_comments():
    sql = "-- header\nCREATE TABLE a (id INT);\n\nCREATE TABLE b (\n  id INT\n);\n"
    assert list(split_statements(sql)) == ["CREATE TABLE a (id INT);", "CREATE TABLE b (\n  id INT\n);"]


def test_run_migrations_applies_each_statement(engine):
    applied = run_migrations(engine, "CREATE TABLE scratch (id INTEGER);\nCREATE TABLE scratch_two (id INTEGER);")
    assert applied == 2


def test_load_brands(tmp_path):
    path = tmp_path / "brands.yml"
    path.write_text("- id: 3\n  name: Acme\n  shop_cipher: ROW_acme\n- id: 4\n  name: Beta\n")
    assert load_brands(path=path) == [Brand(id=3, name="Acme", shop_cipher="ROW_acme"), Brand(id=4, name="Beta")]
    assert len(load_brands(limit=1)) == 1


class FakeRedis:
    def __init__(self):
        self.published = []

    def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


def test_redis_publisher_uses_brand_channel():
    client = FakeRedis()
    RedisEventPublisher(client=client).publish(5, "completed", {"videos_synced": 3})
    assert client.published == [("video:sync:5", {"event": "completed", "videos_synced": 3})]
    assert channel_for(5) == "video:sync:5"


def test_publisher_from_env_defaults_to_logging(monkeypatch, caplog):
    monkeypatch.delenv("EVENT_PUBLISHER", raising=False)
    publisher = publisher_from_env()
    assert type(publisher) is EventPublisher
    with caplog.at_level(logging.INFO):
        publisher.publish(1, "started")
    assert "video:sync:1" in caplog.text


class FakeTask:
    class request:
        id = "task-1"

    def __init__(self):
        self.enqueued = []

    def apply_async(self, args, countdown):
        self.enqueued.append((args, countdown))

    def retry(self, exc):
        return RuntimeError(f"retry: {exc}")


def runner_returning(outcome):
    async def runner(brand, source_run_id=None):
        runner.seen = (brand, source_run_id)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return runner


def test_celery_task_reports_completion(monkeypatch):
    monkeypatch.setattr(celery_app, "load_brands", lambda: [Brand(id=1, name="HexCo")])
    runner = runner_returning(SyncStats(brand_id=1, source_run_id="x", snapshot_date=date(2024, 1, 1), videos_synced=4))
    result = celery_app.run_task(FakeTask(), 1, runner)
    assert result == {"status": "completed", "videos_synced": 4, "row_errors": 0}
    assert runner.seen[1] == "celery-task-1"


def test_celery_task_reenqueues_when_snoozed(monkeypatch):
    monkeypatch.setattr(celery_app, "load_brands", lambda: [Brand(id=1, name="HexCo")])
    task = FakeTask()
    result = celery_app.run_task(task, 1, runner_returning(Snoozed(900, "rate_limited")))
    assert result["status"] == "snoozed"
    assert task.enqueued == [((1,), 900)]


def test_celery_task_retries_fatal_errors(monkeypatch):
    monkeypatch.setattr(celery_app, "load_brands", lambda: [Brand(id=1, name="HexCo")])
    with pytest.raises(RuntimeError, match="retry"):
        celery_app.run_task(FakeTask(), 1, runner_returning(SyncError("boom")))


def test_celery_task_rejects_unknown_brand(monkeypatch):
    monkeypatch.setattr(celery_app, "load_brands", lambda: [])
    with pytest.raises(LookupError):
        celery_app.run_task(FakeTask(), 9, runner_returning(None))
