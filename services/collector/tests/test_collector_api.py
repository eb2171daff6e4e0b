import uuid

import pytest
from fastapi.testclient import TestClient

from services.collector.app import main
from shared.database.session import get_db_session
from shared.schemas.messages import NewsCandidate


@pytest.fixture
def client(session_factory, fake_aggregator, fake_reader):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db_session] = override_db
    main.app.dependency_overrides[main.get_aggregator] = lambda: fake_aggregator
    main.app.dependency_overrides[main.get_reader] = lambda: fake_reader
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-User-Id": str(uuid.uuid4())}


def test_app_creation():
    assert main.app.title == "Daily Digest Collector"


def test_requires_user_identity(client):
    assert client.get("/articles").status_code == 401
    assert client.get("/articles", headers={"X-User-Id": "someone"}).status_code == 401


def test_import_then_list_get_delete(client, headers):
    response = client.post("/articles/import", json={"url": "https://www.example.com/post?utm_source=x", "tags": ["ai"]}, headers=headers)
    assert response.status_code == 201
    item = response.json()["item"]
    assert item["url"] == "https://example.com/post"
    assert item["host"] == "example.com"
    assert item["readingMinutes"] == 2
    assert item["tags"] == ["ai"]

    listing = client.get("/articles", params={"tag": "ai"}, headers=headers).json()
    assert listing["total"] == 1
    assert listing["page"] == 1
    assert listing["items"][0]["id"] == item["id"]

    assert client.get(f"/articles/{item['id']}", headers=headers).json()["item"]["title"].startswith("Parsed")
    assert client.get(f"/articles/{item['id']}", headers={"X-User-Id": str(uuid.uuid4())}).status_code == 404

    assert client.delete(f"/articles/{item['id']}", headers=headers).json() == {"ok": True}
    assert client.delete(f"/articles/{item['id']}", headers=headers).status_code == 404


def test_import_unparsable_page(client, headers, fake_reader):
    fake_reader.failing.add("https://example.com/blank")
    response = client.post("/articles/import", json={"url": "https://example.com/blank"}, headers=headers)
    assert response.status_code == 400


def test_refresh_reports_counts(client, headers, fake_aggregator):
    fake_aggregator.items = [
        NewsCandidate(url="https://a.com/1", source="A"),
        NewsCandidate(url="https://b.com/2", source="B"),
    ]

    first = client.post("/articles/refresh", params={"limit": 5, "topics": "Tech, science"}, headers=headers)
    assert first.status_code == 201
    body = first.json()
    assert (body["imported"], body["updated"], body["seen"]) == (2, 0, 0)
    assert body["topics"] == ["tech", "science"]
    assert fake_aggregator.calls[-1] == {"limit": 5, "topics": ["tech", "science"]}

    second = client.post("/articles/refresh", headers=headers).json()
    assert (second["imported"], second["seen"]) == (0, 2)
    assert [i["source"] for i in second["items"]] == ["A", "B"]


def test_request_id_is_echoed(client, headers):
    response = client.get("/articles", headers={**headers, "X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_liveness(client):
    assert client.get("/collector/health/live").json() == {"status": "alive", "service": "collector"}
