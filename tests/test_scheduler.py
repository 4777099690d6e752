"""Tests for the daily maintenance scheduler."""

import pytest

from ride_progression.db.repositories import UserProgressionRepository
from ride_progression.models import QuestStatus
from ride_progression.services.scheduler import MAINTENANCE_JOB_ID, MaintenanceScheduler


@pytest.fixture
def enabled_scheduler(engine, clock):
    scheduler = MaintenanceScheduler(
        engine.quests,
        engine.notifications,
        UserProgressionRepository(engine.database),
        enabled=True,
        hour_utc=4,
        clock=clock,
    )
    yield scheduler
    scheduler.stop()


class TestRunMaintenance:
    """Tests for MaintenanceScheduler.run_maintenance."""

    def test_generates_quests_for_every_user(self, engine, user_id):
        engine.register_user("rider-2")

        report = engine.scheduler.run_maintenance()

        assert report.succeeded
        by_task = {r.task: r for r in report.results}
        assert by_task["generate_quests"].affected == 8
        assert by_task["expire_quests"].affected == 0
        assert len(engine.quests.get_active_quests(user_id)) == 4
        assert engine.scheduler.last_report is report

    def test_second_run_same_day_creates_nothing(self, engine, user_id):
        engine.scheduler.run_maintenance()
        report = engine.scheduler.run_maintenance()

        by_task = {r.task: r for r in report.results}
        assert by_task["generate_quests"].affected == 0

    def test_next_day_expires_dailies(self, engine, user_id, clock):
        engine.scheduler.run_maintenance()
        clock.advance(days=1)

        report = engine.scheduler.run_maintenance()

        by_task = {r.task: r for r in report.results}
        assert by_task["expire_quests"].affected == 2
        # New dailies only; the week's quests already exist
        assert by_task["generate_quests"].affected == 2
        assert engine.quests.count_quests(user_id, QuestStatus.EXPIRED) == 2

    def test_failing_task_does_not_stop_the_rest(self, engine, user_id, monkeypatch):
        def broken():
            raise RuntimeError("disk full")

        monkeypatch.setattr(engine.notifications, "cleanup_expired", broken)

        report = engine.scheduler.run_maintenance()

        assert not report.succeeded
        failed = [r for r in report.results if not r.success]
        assert [r.task for r in failed] == ["cleanup_read_notifications"]
        assert failed[0].error == "disk full"
        assert report.results[-1].task == "purge_expired_notifications"
        assert report.results[-1].success

    def test_report_to_dict(self, engine):
        report = engine.scheduler.run_maintenance()
        data = report.to_dict()

        assert data["timestamp"] == report.timestamp
        assert [r["task"] for r in data["results"]] == [
            "expire_quests",
            "generate_quests",
            "cleanup_read_notifications",
            "purge_expired_notifications",
        ]


class TestSchedulerLifecycle:
    """Tests for starting and stopping the background job."""

    def test_disabled_scheduler_does_not_start(self, engine):
        engine.scheduler.start()

        assert not engine.scheduler.is_running
        assert engine.scheduler.get_next_run_time() is None

    def test_start_registers_daily_job(self, enabled_scheduler):
        enabled_scheduler.start()

        assert enabled_scheduler.is_running
        job = enabled_scheduler.scheduler.get_job(MAINTENANCE_JOB_ID)
        assert job is not None
        next_run = enabled_scheduler.get_next_run_time()
        assert next_run.hour == 4
        assert next_run.minute == 0

    def test_start_twice_is_harmless(self, enabled_scheduler):
        enabled_scheduler.start()
        enabled_scheduler.start()

        assert enabled_scheduler.is_running

    def test_stop(self, enabled_scheduler):
        enabled_scheduler.start()
        enabled_scheduler.stop()

        assert not enabled_scheduler.is_running
        enabled_scheduler.stop()
