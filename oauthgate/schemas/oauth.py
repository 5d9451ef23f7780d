# oauthgate/schemas/oauth.py
import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RequestTokenOut(BaseModel):
    uuid: uuid.UUID
    signature: str
    oauth_token: str
    expires_at: datetime


class LoginIn(BaseModel):
    uuid: uuid.UUID
    signature: str = Field(min_length=1, max_length=256)
    # The user may need to reauthorize the app while already logged in
    login: bool = True


class LoginOut(BaseModel):
    session_token: str | None = None
    session_expires_at: datetime | None = None


class RemoteProfileOut(BaseModel):
    first_name: str
    last_name: str
    picture_url: str | None = None


class MessageOut(BaseModel):
    message: str
