from __future__ import annotations

from oauthgate.models.remote_link import RemoteAccountLink
from oauthgate.models.user import User
from oauthgate.schemas.remote import RemoteUser
from oauthgate.services.remote_api import TokenPair
from oauthgate.services.users import get_link_by_user_id, link_token_pair, upsert_remote_link


def _remote_user(**overrides) -> RemoteUser:
    data = {
        "id": 482910,
        "name_first": "Ada",
        "name_last": "Lovelace",
        "primary_email": "ada@example.com",
        "picture_url": "https://cdn.example.com/ada.png",
    }
    data.update(overrides)
    return RemoteUser(**data)


def test_first_login_creates_user_and_link(db_session):
    link = upsert_remote_link(db_session, _remote_user(), TokenPair("AT", "AS"))

    assert link.remote_id == 482910
    assert link.first_name == "Ada"
    assert db_session.query(User).count() == 1
    assert get_link_by_user_id(db_session, link.user_id) is not None
    assert link_token_pair(link) == TokenPair("AT", "AS")


def test_repeat_login_updates_profile_and_tokens(db_session):
    first = upsert_remote_link(db_session, _remote_user(), TokenPair("AT", "AS"))
    second = upsert_remote_link(
        db_session,
        _remote_user(name_first="Augusta", picture_url=None),
        TokenPair("AT2", "AS2"),
    )

    assert second.user_id == first.user_id
    assert second.first_name == "Augusta"
    assert second.picture_url is None
    assert link_token_pair(second) == TokenPair("AT2", "AS2")
    assert db_session.query(User).count() == 1
    assert db_session.query(RemoteAccountLink).count() == 1


def test_link_token_pair_missing():
    assert link_token_pair(RemoteAccountLink(user_id=1, remote_id=1)) is None
