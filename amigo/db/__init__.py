from amigo.db.models import (
    Assignment,
    Base,
    Draw,
    DrawStatus,
    Group,
    Participant,
    User,
)
from amigo.db.session import SessionLocal, create_db_engine, get_session, init_engine

__all__ = [
    "Assignment",
    "Base",
    "Draw",
    "DrawStatus",
    "Group",
    "Participant",
    "User",
    "SessionLocal",
    "create_db_engine",
    "get_session",
    "init_engine",
]
