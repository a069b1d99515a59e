from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, UniqueConstraint, func

from app.database.connection import Base

STAFF_ROLES = ("staff", "admin")


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(Text, nullable=False)
    full_name = Column(String(255), nullable=True)
    member_type = Column(String(32), nullable=False, default="regular")
    preferred_language = Column(String(8), nullable=True, default="en")


class UserRole(Base):
    __tablename__ = "user_roles"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    role = Column(String(32), nullable=False, default="member")
    is_approved = Column(Boolean, default=False, nullable=False)
    __table_args__ = (UniqueConstraint('user_id', 'role', name='_user_role_uc'),)


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    # "fcm" or "broker"
    channel = Column(String(16), nullable=False, default="fcm")
    endpoint = Column(Text, nullable=False)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    __table_args__ = (UniqueConstraint('user_id', 'channel', name='_user_channel_uc'),)


class NotificationQueue(Base):
    __tablename__ = "notification_queue"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    workout_id = Column(String(64), nullable=True)
    notification_type = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    message_bg = Column(Text, nullable=True)
    is_sent = Column(Boolean, default=False, nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
