"""
HTTP surface tests: auth, job lifecycle, history, settings and usage
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from optimizer.enums import Field, JobType
from optimizer.main import create_app
from optimizer.services.orchestrator import JobPayload

from tests.conftest import OTHER_TENANT_ID, TENANT_ID
from tests.fakes import DEFAULT_VALUES, FakeCatalog, StubGenerator, make_item


@pytest.fixture
def catalog():
    return FakeCatalog([make_item("p1"), make_item("p2", seo_description="Hand-written description")])


@pytest.fixture
def services(make_services, catalog):
    return make_services(catalog=catalog, generator=StubGenerator())


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as c:
        yield c


def run_worker(services, job_id):
    asyncio.run(services.orchestrator.run(JobPayload(tenant_id=TENANT_ID, job_type=JobType.TITLE_DESC, job_id=job_id)))


def test_requests_without_valid_key_are_rejected(client):
    assert client.get("/v1/jobs").status_code == 401
    r = client.get("/v1/jobs", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid API key"


def test_enqueue_returns_pending_job(client, auth_headers, services):
    r = client.post("/v1/jobs", json={"job_type": "TITLE_DESC", "tone": "FUN"}, headers=auth_headers)

    assert r.status_code == 202
    body = r.json()
    assert body["status"] == "PENDING"
    assert services.queue.qsize() == 1

    status = client.get(f"/v1/jobs/{body['job_id']}", headers=auth_headers).json()
    assert status["state"] == "PENDING"
    assert status["job_type"] == "TITLE_DESC"
    assert status["progress"] == 0.0


def test_second_job_for_tenant_conflicts(client, auth_headers):
    first = client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers).json()

    r = client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers)

    assert r.status_code == 409
    assert r.json()["detail"]["job_id"] == first["job_id"]


def test_other_tenant_can_run_concurrently(client, auth_headers, other_headers):
    assert client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers).status_code == 202
    assert client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=other_headers).status_code == 202


def test_tenant_id_must_match_key(client, auth_headers):
    r = client.post("/v1/jobs", json={"job_type": "TITLE_DESC", "tenant_id": OTHER_TENANT_ID}, headers=auth_headers)
    assert r.status_code == 403


def test_unknown_job_type_is_rejected(client, auth_headers):
    r = client.post("/v1/jobs", json={"job_type": "EVERYTHING"}, headers=auth_headers)
    assert r.status_code == 422


def test_plan_gates_alt_text_jobs(make_services, auth_headers):
    services = make_services(catalog=FakeCatalog([]), generator=StubGenerator(), plan="FREE")
    with TestClient(create_app(services)) as c:
        r = c.post("/v1/jobs", json={"job_type": "ALT_TEXT"}, headers=auth_headers)
    assert r.status_code == 403
    assert "ALT_TEXT" in r.json()["detail"]


def test_full_queue_answers_503(make_services, auth_headers, other_headers):
    services = make_services(catalog=FakeCatalog([]), generator=StubGenerator(), queue_depth=1)
    with TestClient(create_app(services)) as c:
        assert c.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers).status_code == 202
        r = c.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=other_headers)
        assert r.status_code == 503
        assert r.headers["Retry-After"] == "2"

        jobs = c.get("/v1/jobs", headers=other_headers).json()
        assert jobs["jobs"][0]["state"] == "FAILED"
        assert jobs["jobs"][0]["failure_reason"] == "Job queue is full"
        # a rejected job does not block the next attempt
        assert jobs["counts"]["PENDING"] == 0


def test_job_status_is_private_to_tenant(client, auth_headers, other_headers):
    job_id = client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers).json()["job_id"]

    assert client.get(f"/v1/jobs/{job_id}", headers=other_headers).status_code == 404
    assert client.get("/v1/jobs/does-not-exist", headers=auth_headers).status_code == 404


def test_job_history_and_revert_flow(client, auth_headers, services, catalog):
    job_id = client.post("/v1/jobs", json={"job_type": "TITLE_DESC"}, headers=auth_headers).json()["job_id"]
    run_worker(services, job_id)

    status = client.get(f"/v1/jobs/{job_id}", headers=auth_headers).json()
    assert status["state"] == "COMPLETED"
    assert (status["processed_items"], status["total_items"]) == (2, 2)
    assert status["progress"] == 100.0
    assert status["completed_at"] is not None

    listing = client.get("/v1/jobs", headers=auth_headers).json()
    assert listing["counts"]["COMPLETED"] == 1

    history = client.get("/v1/history", params={"job_id": job_id, "limit": 2}, headers=auth_headers).json()
    assert history["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    entries = client.get("/v1/history", params={"job_id": job_id}, headers=auth_headers).json()["entries"]
    p2_title = next(e for e in entries if e["item_id"] == "p2")
    assert p2_title["field"] == "TITLE"
    assert p2_title["new_value"] == DEFAULT_VALUES[Field.TITLE]

    r = client.post(f"/v1/history/{p2_title['id']}/revert", headers=auth_headers)
    assert r.json() == {"success": True, "item_id": "p2"}
    assert catalog.items["p2"]["seo"] == {"title": None, "description": "Hand-written description"}
    again = client.post(f"/v1/history/{p2_title['id']}/revert", headers=auth_headers)
    assert again.status_code == 404

    summary = client.post(f"/v1/jobs/{job_id}/revert", headers=auth_headers).json()
    assert summary == {"success": True, "reverted_count": 2, "total": 2, "errors": []}
    assert catalog.items["p1"]["seo"] == {"title": None, "description": None}
    assert client.post(f"/v1/jobs/{job_id}/revert", headers=auth_headers).status_code == 404

    active = client.get("/v1/history", params={"include_reverted": "false"}, headers=auth_headers).json()
    assert active["entries"] == []


def test_history_validates_paging(client, auth_headers):
    assert client.get("/v1/history", params={"limit": 500}, headers=auth_headers).status_code == 422
    assert client.get("/v1/history", params={"page": 0}, headers=auth_headers).status_code == 422


def test_settings_round_trip(client, auth_headers):
    r = client.put("/v1/settings", json={
        "tone": "LUXURY",
        "excluded_tags": "noseo, draft ,",
        "excluded_collections": ["Gift Cards"],
        "custom_prompts": {"TITLE": "  Mention free shipping  "},
    }, headers=auth_headers)

    assert r.status_code == 200
    settings = client.get("/v1/settings", headers=auth_headers).json()
    assert settings == {
        "tone": "LUXURY",
        "excluded_tags": ["noseo", "draft"],
        "excluded_collections": ["Gift Cards"],
        "custom_prompts": {"TITLE": "Mention free shipping"},
        "plan": "PRO",
    }


def test_settings_reject_unknown_tone(client, auth_headers):
    assert client.put("/v1/settings", json={"tone": "SARCASTIC"}, headers=auth_headers).status_code == 422


def test_usage_reports_plan_and_counters(client, auth_headers, services):
    services.quota.increment(TENANT_ID, "products_optimized", 50)

    usage = client.get("/v1/usage", headers=auth_headers).json()

    assert usage["plan"] == "PRO"
    assert usage["limit"] == 500
    assert usage["counters"]["products_optimized"] == 50
    assert usage["percent_used"] == 10.0


def test_healthz(client):
    r = client.get("/v1/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["X-Request-ID"]


def test_prometheus_metrics_exposed(client, auth_headers):
    client.get("/v1/jobs", headers=auth_headers)
    r = client.get("/v1/metrics/prometheus")
    assert r.status_code == 200
    assert "optimizer_requests_total" in r.text
    assert "optimizer_build_info" in r.text
