import pytest
import requests

from seoulmate_scraper.orchestration import scraper_service as service_module
from seoulmate_scraper.orchestration.scheduler import ScraperScheduler
from seoulmate_scraper.orchestration.scrape_orchestrator import PlaceScraper
from seoulmate_scraper.orchestration.scraper_service import (
    ScrapeInProgressError,
    ScraperService,
    get_scraper_service,
    reset_scraper_service,
)
from seoulmate_scraper.storage.memory_store import RunStatus, RunTrigger

from conftest import ScriptedStrategy, SessionLedger, make_record


def build_service(config, store, outcomes):
    ledger = SessionLedger()
    scraper = PlaceScraper(strategy=ScriptedStrategy(outcomes), config=config,
                           acquire=ledger.acquire, release=ledger.release, sleep=lambda s: None)
    return ScraperService(scraper=scraper, store=store, config=config)


@pytest.fixture()
def places():
    return [make_record(), make_record("KOP000295", "창덕궁")]


def test_scrape_and_save_returns_new_count(scraper_config, memory_store, places):
    service = build_service(scraper_config, memory_store, [places, places])
    try:
        assert service.scrape_and_save() == 2
        assert service.scrape_and_save() == 0
        assert service.get_place_count() == 2
    finally:
        service.shutdown()


def test_run_ledger_records_outcome(scraper_config, memory_store, places):
    service = build_service(scraper_config, memory_store, [[], places])
    try:
        service.scrape_and_save(trigger=RunTrigger.MANUAL)
        run = memory_store.get_all_runs()[0]
        assert run.status == RunStatus.COMPLETED
        assert run.scrape_status == "succeeded"
        assert run.attempts == 2
        assert run.new_count == 2
        assert run.quality["total"] == 2
        event_types = [e.event_type for e in memory_store.get_progress_events(run.id)]
        assert event_types[0] == "run_created"
        assert "retry_scheduled" in event_types
        assert event_types[-1] == "run_completed"
    finally:
        service.shutdown()


def test_empty_scrape_is_completed_not_failed(scraper_config, memory_store):
    service = build_service(scraper_config, memory_store, [[], []])
    try:
        assert service.scrape_and_save() == 0
        run = memory_store.get_all_runs()[0]
        assert run.status == RunStatus.COMPLETED
        assert run.scrape_status == "empty"
    finally:
        service.shutdown()


def test_persistence_failure_marks_run_failed(scraper_config, memory_store, places, monkeypatch):
    service = build_service(scraper_config, memory_store, [places])

    def broken_save(records):
        raise IOError("store unavailable")

    monkeypatch.setattr(memory_store, "save_places", broken_save)
    try:
        with pytest.raises(IOError):
            service.scrape_and_save()
        assert memory_store.get_all_runs()[0].status == RunStatus.FAILED
    finally:
        service.shutdown()


def test_concurrent_run_is_rejected(scraper_config, memory_store, places):
    service = build_service(scraper_config, memory_store, [places])
    service._run_lock.acquire()
    try:
        assert service.is_running()
        with pytest.raises(ScrapeInProgressError):
            service.scrape_and_save()
    finally:
        service._run_lock.release()
        service.shutdown()


def test_scrape_and_save_async(scraper_config, memory_store, places):
    service = build_service(scraper_config, memory_store, [places])
    try:
        run, future = service.scrape_and_save_async()
        assert future.result(timeout=5) == 2
        assert memory_store.get_run(run.id).status == RunStatus.COMPLETED
        assert memory_store.get_run(run.id).trigger == RunTrigger.API
    finally:
        service.shutdown()


def test_test_connection_success(scraper_config, memory_store, monkeypatch):
    class Response:
        ok = True
        status_code = 200

    seen = {}

    def fake_get(url, timeout=None, headers=None):
        seen["url"] = url
        seen["headers"] = headers
        return Response()

    monkeypatch.setattr(service_module.requests, "get", fake_get)
    service = build_service(scraper_config, memory_store, [])
    try:
        result = service.test_connection()
        assert result["success"] is True
        assert result["status_code"] == 200
        assert seen["url"] == scraper_config.base_url
        assert "User-Agent" in seen["headers"]
    finally:
        service.shutdown()


def test_test_connection_failure(scraper_config, memory_store, monkeypatch):
    def fake_get(url, timeout=None, headers=None):
        raise requests.exceptions.ConnectionError("connection refused")

    monkeypatch.setattr(service_module.requests, "get", fake_get)
    service = build_service(scraper_config, memory_store, [])
    try:
        result = service.test_connection()
        assert result["success"] is False
        assert "connection refused" in result["error"]
    finally:
        service.shutdown()


def test_global_service_reset():
    reset_scraper_service()
    try:
        first = get_scraper_service()
        assert get_scraper_service() is first
        reset_scraper_service()
        assert get_scraper_service() is not first
    finally:
        reset_scraper_service()


# scheduler

def test_scheduler_disabled_does_not_start(scraper_config, scheduler_config, memory_store):
    service = build_service(scraper_config, memory_store, [])
    try:
        assert ScraperScheduler(service, scheduler_config).start() is False
    finally:
        service.shutdown()


def test_initial_scrape_runs_when_store_is_empty(scraper_config, scheduler_config, memory_store, places):
    scheduler_config.enabled = True
    service = build_service(scraper_config, memory_store, [places])
    try:
        future = ScraperScheduler(service, scheduler_config).run_initial_if_empty()
        assert future is not None
        assert future.result(timeout=5) == 2
        assert memory_store.get_all_runs()[0].trigger == RunTrigger.STARTUP
    finally:
        service.shutdown()


def test_initial_scrape_skipped_when_places_exist(scraper_config, scheduler_config, memory_store, places):
    scheduler_config.enabled = True
    memory_store.save_places(places)
    service = build_service(scraper_config, memory_store, [])
    try:
        assert ScraperScheduler(service, scheduler_config).run_initial_if_empty() is None
    finally:
        service.shutdown()


def test_initial_scrape_skipped_when_scheduling_disabled(scraper_config, scheduler_config, memory_store, places):
    service = build_service(scraper_config, memory_store, [places])
    try:
        assert ScraperScheduler(service, scheduler_config).run_initial_if_empty() is None
        assert memory_store.get_all_runs() == []
    finally:
        service.shutdown()


def test_initial_scrape_skipped_when_disabled(scraper_config, scheduler_config, memory_store):
    scheduler_config.initial_run_enabled = False
    scheduler_config.enabled = True
    service = build_service(scraper_config, memory_store, [])
    try:
        assert ScraperScheduler(service, scheduler_config).run_initial_if_empty() is None
    finally:
        service.shutdown()


def test_scheduled_scrape_failure_is_contained(scraper_config, scheduler_config, memory_store, places,
                                               monkeypatch):
    service = build_service(scraper_config, memory_store, [places])

    def broken_save(records):
        raise IOError("down")

    monkeypatch.setattr(memory_store, "save_places", broken_save)
    scheduler = ScraperScheduler(service, scheduler_config)
    try:
        assert scheduler.run_scheduled_scrape() is None
        assert scheduler.status()["last_error"] == "down"
    finally:
        service.shutdown()


def test_scheduler_thread_start_and_stop(scraper_config, scheduler_config, memory_store):
    scheduler_config.enabled = True
    service = build_service(scraper_config, memory_store, [])
    scheduler = ScraperScheduler(service, scheduler_config)
    try:
        assert scheduler.start() is True
        assert scheduler.status()["running"] is True
        scheduler.stop(timeout=5)
        assert scheduler.status()["running"] is False
    finally:
        service.shutdown()
