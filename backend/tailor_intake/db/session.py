from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import create_engine, Session

from tailor_intake.config import DATABASE_URL, DATABASE_ECHO

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
        _engine = create_engine(DATABASE_URL, echo=DATABASE_ECHO, connect_args=connect_args)
    return _engine


def set_engine(engine: Engine) -> None:
    """Swap the process-wide engine (used by tests and scripts)."""
    global _engine
    _engine = engine


def get_session() -> Session:
    return Session(get_engine())
