# oauthgate/models/remote_link.py
from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from oauthgate.core.base import Base


class RemoteAccountLink(Base):
    __tablename__ = "remote_account_links"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Numeric user id on the remote platform
    remote_id = Column(Integer, unique=True, index=True, nullable=False)

    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    picture_url = Column(Text, nullable=True)

    # Permanent access token pair issued by the remote platform
    access_token = Column(Text, nullable=True)
    token_secret = Column(Text, nullable=True)

    user = relationship("User", back_populates="remote_link")
