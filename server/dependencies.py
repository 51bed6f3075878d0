"""FastAPI dependency factories."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session as DBSession

from server.config import Settings
from server.db.session import get_session_factory
from server.services.repository import SqlReviewStore


@lru_cache()
def get_settings() -> Settings:
    """Singleton Settings -- override via app.dependency_overrides in tests."""
    return Settings()


def get_db_session(settings: Settings = Depends(get_settings)):
    """Request-scoped session. Services commit; errors roll back."""
    session = get_session_factory(settings)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_store(db: DBSession = Depends(get_db_session)) -> SqlReviewStore:
    return SqlReviewStore(db)


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    Caller identity, as asserted by the upstream auth layer.

    Raises 401 if the header is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()
