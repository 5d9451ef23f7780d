# oauthgate/services/users.py
"""
Local users and their links to remote platform accounts.

Responsibilities:
- Creating the local user row the first time a remote account logs in
- Looking up a link by remote id or local user id
- Refreshing profile fields and the stored access token pair on every login
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from oauthgate.models.remote_link import RemoteAccountLink
from oauthgate.models.user import User
from oauthgate.schemas.remote import RemoteUser
from oauthgate.services.remote_api import TokenPair

logger = logging.getLogger(__name__)


def create_user(db: Session) -> User:
    user = User(is_admin=False, is_root=False)
    db.add(user)
    db.flush()
    return user


def get_link_by_remote_id(db: Session, remote_id: int) -> Optional[RemoteAccountLink]:
    return db.query(RemoteAccountLink).filter(RemoteAccountLink.remote_id == remote_id).first()


def get_link_by_user_id(db: Session, user_id: int) -> Optional[RemoteAccountLink]:
    return db.get(RemoteAccountLink, user_id)


def upsert_remote_link(db: Session, remote_user: RemoteUser, pair: TokenPair) -> RemoteAccountLink:
    """
    Link a remote account to a local user, creating the user on first login.

    Profile fields and the access token pair are overwritten with the latest
    values from the remote platform.
    """
    link = get_link_by_remote_id(db, remote_user.id)

    if link is None:
        user = create_user(db)
        link = RemoteAccountLink(user_id=user.id, remote_id=remote_user.id)
        db.add(link)
        logger.info("Creating new user %s for remote id %s", user.id, remote_user.id)
    else:
        logger.debug("Updating user %s for remote id %s", link.user_id, remote_user.id)

    link.first_name = remote_user.name_first
    link.last_name = remote_user.name_last
    link.email = remote_user.primary_email
    link.picture_url = remote_user.picture_url
    link.access_token = pair.access_token
    link.token_secret = pair.token_secret

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(link)
    return link


def link_token_pair(link: RemoteAccountLink) -> TokenPair | None:
    if not link.access_token or not link.token_secret:
        return None
    return TokenPair(access_token=link.access_token, token_secret=link.token_secret)
