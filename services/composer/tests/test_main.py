"""API tests for the composer service."""
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from services.composer.app import main
from shared.database.session import get_db_session


@pytest.fixture
def client(session_factory, fake_aggregator, fake_summarizer, fake_reader):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db_session] = override_db
    main.app.dependency_overrides[main.get_aggregator] = lambda: fake_aggregator
    main.app.dependency_overrides[main.get_summarizer] = lambda: fake_summarizer
    main.app.dependency_overrides[main.get_reader] = lambda: fake_reader
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def headers(user_id):
    return {"X-User-Id": str(user_id)}


def test_app_creation():
    assert main.app.title == "Daily Digest Composer"


def test_generate_returns_camel_case_digest(client, headers, make_article, user_id):
    make_article(user_id, "https://www.example.com/a", title="Rates held", reading_minutes=4)
    make_article(user_id, "https://other.org/b", title="Storm nears", hours_ago=3)

    response = client.post("/digests/generate", params={"date": "2024-05-01"}, headers=headers)

    assert response.status_code == 201
    item = response.json()["item"]
    assert item["date"] == "2024-05-01"
    assert item["stats"]["totalItems"] == 2
    assert set(item["stats"]) == {"totalItems", "longReads", "newCount"}
    assert "generatedAt" in item
    first = item["items"][0]
    assert first["rank"] == 1
    assert first["readingMinutes"] == 4
    assert first["category"] == "top"
    assert item["sources"] == ["example.com", "other.org"]


def test_get_returns_saved_digest_or_null(client, headers, make_article, user_id):
    assert client.get("/digests/2024-05-01", headers=headers).json() == {"item": None}

    make_article(user_id, "https://example.com/a")
    created = client.post("/digests/generate", params={"date": "2024-05-01"}, headers=headers).json()["item"]

    fetched = client.get("/digests/2024-05-01", headers=headers).json()["item"]
    assert fetched["id"] == created["id"]
    assert client.get("/digests/2024-05-01", headers={"X-User-Id": str(uuid.uuid4())}).json() == {"item": None}


def test_regenerating_keeps_one_digest(client, headers, make_article, user_id):
    make_article(user_id, "https://example.com/a")
    first = client.post("/digests/generate", params={"date": "2024-05-01"}, headers=headers).json()["item"]
    second = client.post("/digests/generate", params={"date": "2024-05-01"}, headers=headers).json()["item"]
    assert first["id"] == second["id"]


def test_empty_store_gives_empty_digest(client, headers, fake_aggregator):
    item = client.post("/digests/generate", params={"date": "2024-05-01", "topics": "AI, climate"}, headers=headers).json()["item"]
    assert item["items"] == []
    assert item["stats"]["totalItems"] == 0
    assert fake_aggregator.calls == [{"limit": 24, "topics": ["ai", "climate"]}]


@pytest.mark.parametrize(
    "params",
    [
        {"date": "2024-02-30"},
        {"date": "20240101"},
        {"limit": 0},
        {"limit": 51},
        {"length": "outline"},
    ],
)
def test_invalid_generate_parameters(client, headers, params):
    assert client.post("/digests/generate", params=params, headers=headers).status_code == 422


def test_invalid_read_date(client, headers):
    assert client.get("/digests/20240101", headers=headers).status_code == 422
    assert client.get("/digests/2023-02-29", headers=headers).status_code == 422


def test_requires_user_identity(client):
    assert client.post("/digests/generate").status_code == 401
    assert client.get("/digests/2024-05-01", headers={"X-User-Id": "nobody"}).status_code == 401


def test_datastore_failure_is_500(client, headers):
    class BrokenBuilder:
        async def generate(self, *args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is gone"))

    main.app.dependency_overrides[main.get_builder] = lambda: BrokenBuilder()

    response = client.post("/digests/generate", headers=headers)
    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to generate digest"}


def test_liveness(client):
    assert client.get("/compose/health/live").json() == {"status": "alive", "service": "composer"}
