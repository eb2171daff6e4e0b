import uuid

import pytest
from fastapi.testclient import TestClient

from services.analyzer.app import main
from shared.database.models.article import Article
from shared.database.models.user import User
from shared.database.session import get_db_session


@pytest.fixture
def client(session_factory, fake_summarizer, fake_reader):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db_session] = override_db
    main.app.dependency_overrides[main.get_summarizer] = lambda: fake_summarizer
    main.app.dependency_overrides[main.get_reader] = lambda: fake_reader
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_app_creation():
    assert main.app.title == "Daily Digest Analyzer"


def test_summarize_text_uses_provider_output(client, fake_summarizer, user_id):
    fake_summarizer.summary = "A short answer."
    response = client.post(
        "/ai/summarize", json={"text": "Some long text.", "mode": "detailed"}, headers={"X-User-Id": str(user_id)}
    )
    assert response.status_code == 200
    assert response.json() == {"summary": "A short answer.", "mode": "detailed"}
    assert fake_summarizer.calls == [("detailed", "Some long text.")]


def test_summarize_text_falls_back_locally(client, user_id):
    text = "First point. Second point. Third point. Fourth point."
    response = client.post("/ai/summarize", json={"text": text}, headers={"X-User-Id": str(user_id)})
    assert response.json() == {"summary": "First point. Second point. Third point.", "mode": "tldr"}


def test_summarize_requires_text_or_article(client, user_id):
    response = client.post("/ai/summarize", json={"mode": "tldr"}, headers={"X-User-Id": str(user_id)})
    assert response.status_code == 422

    response = client.post("/ai/summarize", json={"text": "x", "mode": "poem"}, headers={"X-User-Id": str(user_id)})
    assert response.status_code == 422


def test_unknown_article_is_404(client, user_id):
    response = client.post(
        "/ai/summarize", json={"articleId": str(uuid.uuid4())}, headers={"X-User-Id": str(user_id)}
    )
    assert response.status_code == 404


def test_article_summary_strips_headline(client, fake_summarizer, make_article, user_id, session_factory):
    body = "Rates Decision: " + "The bank held rates steady amid slowing inflation. " * 10
    article = make_article(user_id, "https://example.com/rates", title="Rates Decision", full_content=f"<p>{body}</p>")
    fake_summarizer.summary = "Held."

    response = client.post(
        "/ai/summarize", json={"articleId": str(article.id)}, headers={"X-User-Id": str(user_id)}
    )

    assert response.json()["summary"] == "Held."
    sent = fake_summarizer.calls[0][1]
    assert "Rates Decision" not in sent
    assert sent.startswith(": The bank held rates")


def test_thin_article_is_reparsed_and_saved(client, fake_reader, make_article, user_id, session_factory):
    article = make_article(user_id, "https://example.com/thin", title="Thin", excerpt="Tiny.")

    response = client.post(
        "/ai/summarize", json={"articleId": str(article.id), "mode": "outline"}, headers={"X-User-Id": str(user_id)}
    )

    assert response.status_code == 200
    assert fake_reader.urls == ["https://example.com/thin"]
    with session_factory() as session:
        saved = session.get(Article, article.id)
        assert saved.full_content == "<p>Parsed body text.</p>"
        assert saved.reading_minutes == 2


def test_new_caller_is_registered(client, session_factory):
    caller = uuid.uuid4()
    client.post("/ai/summarize", json={"text": "Hello there."}, headers={"X-User-Id": str(caller)})
    with session_factory() as session:
        assert session.get(User, caller) is not None
