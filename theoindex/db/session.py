from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import DATABASE_ECHO, DATABASE_URL


def make_engine(url: str = DATABASE_URL):
    """Create an engine; SQLite connections may be shared across job worker threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, echo=DATABASE_ECHO)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False)
