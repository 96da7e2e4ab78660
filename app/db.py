from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # SQLite connections are handed between the request thread pool and background tasks
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


engine = create_engine(settings.DB_URL, future=True, connect_args=_connect_args(settings.DB_URL))
SessionLocal = sessionmaker(bind=engine, class_=Session, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
