from __future__ import annotations

from fastapi import Request

from oauthgate.services.remote_api import RemoteApiClient


def get_remote_api(request: Request) -> RemoteApiClient:
    """The client built in the application lifespan."""
    return request.app.state.remote_api
