# oauthgate/models/user.py
from sqlalchemy import Boolean, Column, DateTime, Integer, func
from sqlalchemy.orm import relationship

from oauthgate.core.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    is_admin = Column(Boolean, nullable=False, server_default="false", default=False)
    is_root = Column(Boolean, nullable=False, server_default="false", default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # user → linked remote account (at most one)
    remote_link = relationship(
        "RemoteAccountLink",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    # user → sessions
    sessions = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
    )
