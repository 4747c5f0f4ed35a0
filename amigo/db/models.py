from __future__ import annotations

import enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class DrawStatus(str, enum.Enum):
    NOT_DRAWN = "not_drawn"
    DRAWN = "drawn"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    telegram_username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    has_private_chat = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    memberships = relationship("Participant", back_populates="user", passive_deletes=True)

    def __repr__(self) -> str:
        return (
            "<User(id={0}, telegram_id={1}, username={2}, has_private_chat={3})>"
        ).format(self.id, self.telegram_id, self.telegram_username, self.has_private_chat)


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    title = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    drawn_at = Column(DateTime(timezone=True), nullable=True)

    participants = relationship("Participant", back_populates="group", passive_deletes=True)
    assignments = relationship("Assignment", back_populates="group", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, telegram_id={self.telegram_id}, drawn_at={self.drawn_at})>"


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    restrictions = Column(JSON, nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)

    group = relationship("Group", back_populates="participants")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_participants_group_user"),
    )

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None


class Draw(Base):
    __tablename__ = "draws"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    seed = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("group_id", name="uq_draws_group"),
    )


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    draw_id = Column(Integer, ForeignKey("draws.id", ondelete="CASCADE"), nullable=False)
    giver_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    revealed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    group = relationship("Group", back_populates="assignments")
    giver = relationship("User", foreign_keys=[giver_user_id])
    receiver = relationship("User", foreign_keys=[receiver_user_id])

    __table_args__ = (
        UniqueConstraint("group_id", "giver_user_id", name="uq_assignments_group_giver"),
        UniqueConstraint("group_id", "receiver_user_id", name="uq_assignments_group_receiver"),
    )
