from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.analyzer.app.summarize import Summarizer
from services.collector.app.aggregator import FeedAggregator
from services.collector.app.reader import fetch_and_parse
from services.composer.app.crud import get_digest
from services.composer.app.digest_builder import DigestBuilder
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import get_db_session, init_db
from shared.schemas.messages import DigestEnvelope, DigestLength, DigestOut
from shared.utils.api import get_current_user_id, install_request_context
from shared.utils.dates import is_valid_ymd, today_ymd
from shared.utils.health import create_composer_health_checker, health_router

# Setup logging
logger = setup_logging("composer")

# Get configuration
settings = get_settings()

# Create health checker
health_checker = create_composer_health_checker()

YMD_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Composer service...")
    init_db()
    try:
        yield
    finally:
        # Cleanup Redis connections
        from shared.utils.redis_client import close_all_redis_clients

        close_all_redis_clients()
        logger.info("Redis connections closed")


app = FastAPI(
    title="Daily Digest Composer",
    description="Builds and serves per-user daily digests.",
    lifespan=lifespan,
)
install_request_context(app)
app.include_router(health_router(health_checker, "/compose"))


@lru_cache()
def get_aggregator() -> FeedAggregator:
    return FeedAggregator(settings.news)


@lru_cache()
def get_summarizer() -> Summarizer:
    return Summarizer(settings.ai)


def get_reader():
    return fetch_and_parse


def get_builder(
    db: Session = Depends(get_db_session),
    aggregator: FeedAggregator = Depends(get_aggregator),
    summarizer: Summarizer = Depends(get_summarizer),
    reader=Depends(get_reader),
) -> DigestBuilder:
    return DigestBuilder(
        db,
        aggregator,
        summarizer,
        settings.digest,
        reader=reader,
        max_concurrency=settings.ai.max_concurrency,
    )


def _check_date(value: str) -> str:
    if not is_valid_ymd(value):
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "date must be a real YYYY-MM-DD day")
    return value


@app.get("/compose/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/digests/generate", status_code=status.HTTP_201_CREATED, response_model=DigestEnvelope)
async def generate_digest(
    date: Optional[str] = Query(None, pattern=YMD_PATTERN),
    limit: Optional[int] = Query(None, ge=1, le=50),
    refresh: bool = Query(False),
    length: DigestLength = Query("detailed"),
    topics: Optional[str] = Query(None, description="Comma-separated topics for the refresh"),
    user_id: UUID = Depends(get_current_user_id),
    builder: DigestBuilder = Depends(get_builder),
):
    """Generate (or regenerate) the caller's digest for ``date``, default today."""
    date = _check_date(date) if date else today_ymd()
    topic_list: List[str] = [t.strip().lower() for t in (topics or "").split(",") if t.strip()]

    try:
        digest = await builder.generate(
            user_id,
            date=date,
            limit=limit,
            refresh=refresh,
            summary_length=length,
            topics=topic_list,
        )
    except SQLAlchemyError:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate digest")

    logger.info(f"Generated digest {digest.id} for {user_id} on {date}")
    return DigestEnvelope(item=DigestOut.model_validate(digest))


@app.get("/digests/{date}", response_model=DigestEnvelope)
def read_digest(
    date: str = Path(..., pattern=YMD_PATTERN),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db_session),
):
    """The caller's digest for ``date``, or ``{"item": null}``."""
    digest = get_digest(db, user_id, _check_date(date))
    return DigestEnvelope(item=DigestOut.model_validate(digest) if digest else None)
