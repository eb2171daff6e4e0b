from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from shared.app_logging.logger import get_logger
from shared.database.models.digest import Digest
from shared.database.store import find_one, upsert

logger = get_logger("composer.crud")


def get_digest(db: Session, user_id: UUID, date: str) -> Optional[Digest]:
    return find_one(db, Digest, {"user_id": user_id, "date": date})


def save_digest(
    db: Session,
    user_id: UUID,
    date: str,
    tldr: str,
    topics: List[str],
    sources: List[str],
    stats: Dict[str, Any],
    items: List[Dict[str, Any]],
    generated_at: datetime,
) -> Digest:
    """Write the user's digest for ``date``, replacing every generated field.

    Commits, so the digest lands whole or not at all.
    """
    try:
        digest, created = upsert(
            db,
            Digest,
            {"user_id": user_id, "date": date},
            patch={
                "tldr": tldr,
                "topics": topics,
                "sources": sources,
                "stats": stats,
                "items": items,
                "generated_at": generated_at,
            },
        )
        db.commit()
        logger.info(f"{'Created' if created else 'Replaced'} digest {digest.id} for {user_id} on {date}")
        return digest
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving digest for {user_id} on {date}: {e}")
        raise
