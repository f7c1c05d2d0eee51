from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from editorial.config import settings

DATABASE_URL = settings.database_url  # default: sqlite:///./editorial.db

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
