# oauthgate/routes/sessions.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from oauthgate.core.database import get_db
from oauthgate.dependencies.auth import get_current_session
from oauthgate.models.session import UserSession
from oauthgate.schemas.oauth import MessageOut
from oauthgate.services.sessions import delete_session

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


@router.post("/logout", response_model=MessageOut)
def logout(
    current: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Delete the session behind the presented bearer credential."""
    delete_session(db, current.id)
    return {"message": "Logged out"}
