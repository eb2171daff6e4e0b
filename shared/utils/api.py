"""FastAPI plumbing shared by the HTTP services: request context and caller identity."""

from typing import Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from shared.app_logging.logger import CorrelationContext, get_logger
from shared.database.models.user import User
from shared.database.session import get_db_session
from shared.database.store import upsert

logger = get_logger("shared.api")

REQUEST_ID_HEADER = "X-Request-ID"


def install_request_context(app: FastAPI) -> None:
    """Run every request under a correlation id, echoed back in the response."""

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with CorrelationContext(request.headers.get(REQUEST_ID_HEADER)) as correlation_id:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db_session),
) -> UUID:
    """Resolve the caller set by the authenticating gateway.

    The user row is created on first sight so the daily sweep can find it.
    """
    if not x_user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing user identity")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid user identity")

    _, created = upsert(db, User, {"id": user_id}, {})
    if created:
        db.commit()
        logger.info(f"Registered user {user_id}")
    return user_id
