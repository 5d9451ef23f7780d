"""SQLAlchemy models package."""
from oauthgate.models.user import User
from oauthgate.models.remote_link import RemoteAccountLink
from oauthgate.models.request_token import RequestToken
from oauthgate.models.session import UserSession

__all__ = [
    "User",
    "RemoteAccountLink",
    "RequestToken",
    "UserSession",
]
