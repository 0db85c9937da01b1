"""
Base database model and session management
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import declarative_base, sessionmaker
from growth_insights.config import get_settings
from growth_insights.utils.logger import log

settings = get_settings()


def resolve_database_url(url: str) -> str:
    """Resolve relative SQLite paths to absolute so cwd changes can't break it"""
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        rel_path = url[len("sqlite:///"):]
        if rel_path and rel_path != ":memory:":
            return "sqlite:///" + os.path.abspath(rel_path)
    return url


def build_engine(url: str):
    """Create an engine tuned for the metric store workload"""
    url = resolve_database_url(url)
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_recycle=300,
    )


engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def init_db(bind=None):
    """Initialize metric store tables"""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    log.info(f"Database tables ready ({', '.join(sorted(Base.metadata.tables))})")
