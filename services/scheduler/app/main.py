import asyncio
import time
from threading import Thread
from typing import Callable, Dict, List, Optional
from uuid import UUID

import schedule
import uvicorn
from fastapi import FastAPI
from sqlalchemy import select
from sqlalchemy.orm import Session
from tenacity import RetryError, retry, stop_after_attempt, wait_fixed

from services.analyzer.app.summarize import Summarizer
from services.collector.app.aggregator import FeedAggregator
from services.composer.app.digest_builder import DigestBuilder
from shared.app_logging.logger import CorrelationContext, setup_logging
from shared.config.settings import get_settings
from shared.database.models.user import User
from shared.database.session import SessionLocal, init_db
from shared.utils.dates import today_ymd

# Setup logging
logger = setup_logging("scheduler")

settings = get_settings()

RETRY_WAIT_SECONDS = 5

BuilderFactory = Callable[[Session], DigestBuilder]


def default_builder_factory() -> BuilderFactory:
    """One aggregator and summarizer shared by every user in a sweep."""
    aggregator = FeedAggregator(settings.news)
    summarizer = Summarizer(settings.ai)

    def make(db: Session) -> DigestBuilder:
        return DigestBuilder(
            db,
            aggregator,
            summarizer,
            settings.digest,
            max_concurrency=settings.ai.max_concurrency,
        )

    return make


def list_user_ids(db: Session) -> List[UUID]:
    return list(db.execute(select(User.id).order_by(User.created_at)).scalars().all())


@retry(stop=stop_after_attempt(settings.scheduler.max_attempts), wait=wait_fixed(RETRY_WAIT_SECONDS))
async def generate_for_user(user_id: UUID, date: str, make_builder: BuilderFactory, session_factory=SessionLocal):
    """Build one user's digest in its own session; retried as a whole."""
    with session_factory() as db:
        digest = await make_builder(db).generate(user_id, date=date, refresh=False)
    logger.info(f"Digest {digest.id} ready for {user_id}")
    return digest


async def run_daily_sweep(
    date: Optional[str] = None,
    make_builder: Optional[BuilderFactory] = None,
    session_factory=SessionLocal,
) -> Dict[str, int]:
    """Generate today's digest for every user; one user's failure does not stop the rest."""
    date = date or today_ymd()
    make_builder = make_builder or default_builder_factory()

    with session_factory() as db:
        user_ids = list_user_ids(db)
    logger.info(f"Daily sweep for {date}: {len(user_ids)} users")

    succeeded = failed = 0
    for user_id in user_ids:
        with CorrelationContext():
            try:
                await generate_for_user(user_id, date, make_builder, session_factory)
                succeeded += 1
            except RetryError:
                failed += 1
                logger.error(
                    f"Digest for {user_id} failed after {settings.scheduler.max_attempts} attempts; "
                    "deferring to next schedule"
                )
            except Exception:
                failed += 1
                logger.exception(f"Digest for {user_id} failed")

    logger.info(f"Daily sweep for {date} finished: {succeeded} ok, {failed} failed")
    return {"users": len(user_ids), "succeeded": succeeded, "failed": failed}


def daily_job():
    """The job to be run daily."""
    logger.info("Starting daily job...")
    try:
        asyncio.run(run_daily_sweep())
    except Exception:
        logger.exception("Daily job crashed")


def run_schedule():
    """Run the scheduler."""
    schedule.every().day.at(settings.scheduler.run_at).do(daily_job)
    logger.info(f"Daily digest sweep scheduled at {settings.scheduler.run_at}")

    while True:
        schedule.run_pending()
        time.sleep(1)


# FastAPI app for health checks
app = FastAPI(title="Daily Digest Scheduler")


@app.get("/health")
def health_check():
    return {"status": "ok", "jobs_enabled": settings.scheduler.enable_jobs}


def run_fastapi():
    """Run the FastAPI app."""
    uvicorn.run(app, host="0.0.0.0", port=8005)


if __name__ == "__main__":
    init_db()
    if settings.scheduler.enable_jobs:
        # Run the scheduler in a separate thread
        scheduler_thread = Thread(target=run_schedule, daemon=True)
        scheduler_thread.start()
    else:
        logger.info("ENABLE_JOBS is off; only serving /health")

    # Run the FastAPI app in the main thread
    run_fastapi()
