# oauthgate/schemas/remote.py
from pydantic import BaseModel, ConfigDict


class RemoteUser(BaseModel):
    """Profile returned by the remote platform's ``users/{id}`` endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: int
    school_id: int | None = None
    name_first: str = ""
    name_last: str = ""
    primary_email: str | None = None
    picture_url: str | None = None
