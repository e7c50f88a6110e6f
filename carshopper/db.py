# carshopper/db.py
"""Database engine and session utilities.

The process entry point builds the engine and session factory once and passes
the factory into each component. Nothing here connects at import time.
"""
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

load_dotenv()

Base = declarative_base()

def database_url_from_env() -> str:
    url = os.getenv("POSTGRES_URL")
    if not url:
        raise RuntimeError("POSTGRES_URL not set")
    # Normalize SQLAlchemy URL scheme (SQLAlchemy 2.x doesn't accept 'postgres://')
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url

def make_engine(url: str):
    if url.startswith("sqlite"):
        # worker threads each open their own connection
        return create_engine(url, connect_args={"check_same_thread": False})
    # tuned pool settings for cloud DB
    return create_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
        pool_pre_ping=True
    )

def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

def create_tables(engine):
    import carshopper.models  # noqa: F401 ensure models are imported so tables are known
    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    Base.metadata.create_all(bind=engine)
