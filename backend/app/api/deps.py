from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from backend.app.core.database import get_db
from backend.app.repositories.registry import Repositories


def get_repositories(db: Session = Depends(get_db)) -> Repositories:
    """Per-request repositories bound to the request's session."""
    return Repositories.from_session(db)
