from typing import Optional

import redis

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.database.models.digest import Digest
from shared.schemas.messages import DigestReady
from shared.utils.redis_client import RedisClient
from shared.utils.redis_client import get_redis_client as get_shared_redis_client
from shared.utils.retry import retry

logger = get_logger("composer.redis_client")


@retry(retryable_exceptions=(redis.exceptions.ConnectionError, redis.exceptions.TimeoutError))
def publish_digest_ready(digest: Digest, client: Optional[RedisClient] = None) -> Optional[str]:
    """Publish a digest_ready event to the digest stream; returns the message id."""
    settings = get_settings()
    if not settings.redis.events_enabled:
        logger.debug("Digest events disabled; not publishing")
        return None

    client = client or get_shared_redis_client("composer")
    event = DigestReady(
        digest_id=digest.id,
        user_id=digest.user_id,
        date=digest.date,
        total_items=len(digest.items or []),
        generated_at=digest.generated_at,
    )

    # Convert to string format for Redis
    payload = {
        "version": event.version,
        "digest_id": str(event.digest_id),
        "user_id": str(event.user_id),
        "date": event.date,
        "total_items": str(event.total_items),
        "generated_at": event.generated_at.isoformat(),
    }

    message_id = client.xadd(settings.redis.digest_stream, payload)
    logger.info(f"✅ Published digest_ready: {message_id}")
    return message_id
