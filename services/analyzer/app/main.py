from contextlib import asynccontextmanager
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from sqlalchemy.orm import Session

from services.analyzer.app.crud import load_article_text
from services.analyzer.app.normalize import fallback_summary
from services.analyzer.app.summarize import Summarizer
from services.collector.app.reader import fetch_and_parse
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import get_db_session, init_db
from shared.schemas.messages import SummarizeRequest, SummarizeResponse
from shared.utils.api import get_current_user_id, install_request_context
from shared.utils.health import create_analyzer_health_checker, health_router

# Setup logging
logger = setup_logging("analyzer")

SUMMARIES_SERVED = Counter("analyzer_summaries_total", "Summaries returned", ["mode"])
SUMMARY_FALLBACKS = Counter("analyzer_summary_fallbacks_total", "Summaries built locally because the provider failed")

settings = get_settings()
health_checker = create_analyzer_health_checker()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Analyzer service...")
    init_db()
    yield
    from shared.utils.redis_client import close_all_redis_clients

    close_all_redis_clients()
    logger.info("Analyzer shut down cleanly")


app = FastAPI(
    title="Daily Digest Analyzer",
    description="Summarizes free text and saved articles.",
    lifespan=lifespan,
)
install_request_context(app)
app.include_router(health_router(health_checker, "/analyzer"))


@lru_cache()
def get_summarizer() -> Summarizer:
    return Summarizer(settings.ai)


def get_reader():
    return fetch_and_parse


@app.get("/analyzer/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/ai/summarize", response_model=SummarizeResponse)
async def summarize(
    body: SummarizeRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
    summarizer: Summarizer = Depends(get_summarizer),
    reader=Depends(get_reader),
):
    """Summarize free text, or one of the caller's saved articles."""
    if body.text and body.article_id is None:
        source = body.text
    else:
        source = await load_article_text(db, user_id, body.article_id, reader)
        if source is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Article not found")

    summary = await summarizer.summarize(source, body.mode)
    if not summary:
        SUMMARY_FALLBACKS.inc()
        summary = fallback_summary(source, body.mode)

    SUMMARIES_SERVED.labels(mode=body.mode).inc()
    return SummarizeResponse(summary=summary, mode=body.mode)
