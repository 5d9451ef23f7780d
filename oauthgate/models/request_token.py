# oauthgate/models/request_token.py
import uuid

from sqlalchemy import Column, DateTime, String, Uuid, func

from oauthgate.core.base import Base


class RequestToken(Base):
    """Short-lived OAuth request token held between the two outbound legs of a login flow."""

    __tablename__ = "oauth_request_tokens"

    # Flow handle given to the client
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    access_token = Column(String(255), nullable=False)

    # Never sent to the client; keys the flow signature
    token_secret = Column(String(255), nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
