from typing import Generator

from sqlalchemy.orm import Session

from editorial.db import models
from editorial.db.base import SessionLocal, engine
from editorial.db.migrate import migrate


def init_db() -> None:
    """Create every table declared in `models`, then add late columns on SQLite."""
    models.Base.metadata.create_all(bind=engine)
    migrate(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
