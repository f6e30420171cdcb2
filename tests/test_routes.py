import pytest

from seoulmate_scraper.main import create_app
from seoulmate_scraper.orchestration import scraper_service as service_module
from seoulmate_scraper.orchestration.scrape_orchestrator import PlaceScraper
from seoulmate_scraper.orchestration.scraper_service import ScraperService

from conftest import ScriptedStrategy, SessionLedger, make_record


@pytest.fixture()
def service(scraper_config, memory_store):
    ledger = SessionLedger()
    outcomes = [[make_record(), make_record("KOP000295", "창덕궁")] for _ in range(4)]
    scraper = PlaceScraper(strategy=ScriptedStrategy(outcomes), config=scraper_config,
                           acquire=ledger.acquire, release=ledger.release, sleep=lambda s: None)
    service = ScraperService(scraper=scraper, store=memory_store, config=scraper_config)
    yield service
    service.shutdown()


@pytest.fixture()
def client(service):
    app = create_app(service=service, start_scheduler=False, testing=True)
    return app.test_client()


def test_run_scraper(client):
    response = client.post("/api/scraper/run")
    assert response.status_code == 200
    body = response.get_json()
    assert body["new_places"] == 2
    assert body["total_places"] == 2


def test_run_scraper_conflict(client, service):
    service._run_lock.acquire()
    try:
        response = client.post("/api/scraper/run")
    finally:
        service._run_lock.release()
    assert response.status_code == 409


def test_run_scraper_async_and_poll(client, service):
    response = client.post("/api/scraper/run-async")
    assert response.status_code == 202
    run_id = response.get_json()["run_id"]

    service._executor.shutdown(wait=True)

    run = client.get(f"/api/scraper/runs/{run_id}").get_json()
    assert run["status"] == "completed"
    assert run["new_count"] == 2
    assert run["progress_events"][0]["event_type"] == "run_created"

    listed = client.get("/api/scraper/runs").get_json()
    assert listed["runs"][0]["id"] == run_id


def test_unknown_run_is_404(client):
    assert client.get("/api/scraper/runs/missing").status_code == 404


def test_count_and_places(client):
    assert client.get("/api/scraper/count").get_json() == {"count": 0}
    client.post("/api/scraper/run")

    assert client.get("/api/scraper/count").get_json() == {"count": 2}
    places = client.get("/api/scraper/places?limit=1").get_json()
    assert places["total"] == 2
    assert len(places["places"]) == 1

    place = client.get("/api/scraper/places/KOP000295").get_json()
    assert place["name"] == "창덕궁"
    assert client.get("/api/scraper/places/KOP999999").status_code == 404


def test_places_rejects_bad_paging(client):
    assert client.get("/api/scraper/places?limit=abc").status_code == 400


def test_test_connection_route(client, monkeypatch):
    class Response:
        ok = False
        status_code = 503

    monkeypatch.setattr(service_module.requests, "get", lambda url, timeout=None, headers=None: Response())
    response = client.get("/api/scraper/test-connection")
    assert response.status_code == 502
    assert response.get_json()["status_code"] == 503


def test_health(client):
    body = client.get("/api/health").get_json()
    assert "status" in body
    assert body["scheduler"]["enabled"] is False
    assert body["places"] == 0
