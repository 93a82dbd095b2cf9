from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    # the single active refresh token; NULL when logged out
    current_refresh_token = Column(Text, nullable=True)

    subscribers = relationship(
        "Subscription",
        foreign_keys="Subscription.channel_id",
        back_populates="channel",
        passive_deletes=True,
    )
    subscriptions = relationship(
        "Subscription",
        foreign_keys="Subscription.subscriber_id",
        back_populates="subscriber",
        passive_deletes=True,
    )
