from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from sqlalchemy.orm import Session

from services.collector.app import crud
from services.collector.app.aggregator import FeedAggregator
from services.collector.app.reader import fetch_and_parse
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import get_db_session, init_db
from shared.schemas.messages import ArticleImport, ArticleOut
from shared.utils.api import get_current_user_id, install_request_context
from shared.utils.health import create_collector_health_checker, health_router

# Setup logging
logger = setup_logging("collector")

ARTICLES_IMPORTED = Counter("collector_articles_imported_total", "Articles created by imports and refreshes")

settings = get_settings()
health_checker = create_collector_health_checker()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Collector service...")
    init_db()
    yield
    from shared.utils.redis_client import close_all_redis_clients

    close_all_redis_clients()
    logger.info("Collector shut down cleanly")


app = FastAPI(
    title="Daily Digest Collector",
    description="Aggregates news candidates and stores per-user articles.",
    lifespan=lifespan,
)
install_request_context(app)
app.include_router(health_router(health_checker, "/collector"))


def get_aggregator() -> FeedAggregator:
    return FeedAggregator(settings.news)


def get_reader():
    return fetch_and_parse


def _split_topics(topics: Optional[str]) -> List[str]:
    return [t.strip().lower() for t in (topics or "").split(",") if t.strip()]


@app.get("/collector/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/articles")
def list_articles(
    page: int = Query(1, ge=1),
    limit: int = Query(30, ge=1, le=100),
    q: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
):
    rows, total = crud.list_articles(db, user_id, page=page, limit=limit, q=q, tag=tag)
    return {
        "items": [ArticleOut.from_row(row).model_dump(by_alias=True, mode="json") for row in rows],
        "page": page,
        "total": total,
    }


@app.get("/articles/{article_id}")
def get_article(
    article_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
):
    row = crud.get_article(db, user_id, article_id)
    if row is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Article not found")
    return {"item": ArticleOut.from_row(row).model_dump(by_alias=True, mode="json")}


@app.post("/articles/import", status_code=status.HTTP_201_CREATED)
async def import_article(
    body: ArticleImport,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
    reader=Depends(get_reader),
):
    row = await crud.import_by_url(db, user_id, body.url, body.tags, reader=reader)
    if row is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Could not parse the page at that URL")
    ARTICLES_IMPORTED.inc()
    return {"item": ArticleOut.from_row(row).model_dump(by_alias=True, mode="json")}


@app.post("/articles/refresh", status_code=status.HTTP_201_CREATED)
async def refresh_articles(
    limit: int = Query(24, ge=1, le=100),
    force: bool = Query(False),
    topics: Optional[str] = Query(None, description="Comma-separated topics"),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
    aggregator: FeedAggregator = Depends(get_aggregator),
    reader=Depends(get_reader),
):
    """Pull fresh candidates and mark them seen for the caller."""
    wanted = _split_topics(topics)
    candidates = await aggregator.fetch_news_items(limit=limit, topics=wanted)
    result = await crud.refresh_articles(db, user_id, candidates, limit=limit, force=force, reader=reader)
    ARTICLES_IMPORTED.inc(result.imported)
    return {
        "items": [ArticleOut.from_row(row).model_dump(by_alias=True, mode="json") for row in result.articles],
        "imported": result.imported,
        "updated": result.updated,
        "seen": result.seen,
        "topics": wanted or list(settings.news.default_topics),
    }


@app.delete("/articles/{article_id}")
def delete_article(
    article_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
):
    if not crud.delete_article(db, user_id, article_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Article not found")
    return {"ok": True}
