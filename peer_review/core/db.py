"""
SQLAlchemy engine, session, and base. DB path from config or default.
"""
import logging
from pathlib import Path
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_DIR = Path.home() / ".peer_review"


def _default_db_url() -> str:
    DEFAULT_DB_DIR.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{DEFAULT_DB_DIR / 'peer_review.db'}"


class Database:
    """Owns one engine and its session factory. Created by the app and passed to stores."""

    def __init__(self, db_url: str, echo: bool = False):
        self.url = db_url
        engine_kwargs: Dict[str, Any] = {"echo": echo, "future": True}
        if db_url.startswith("sqlite:///:memory:") or db_url == "sqlite://":
            # One shared connection so every session sees the same in-memory DB
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            engine_kwargs["poolclass"] = StaticPool
        elif db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        self.engine = create_engine(db_url, **engine_kwargs)
        self._SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def from_config(cls, config_data: Optional[dict] = None, db_url: Optional[str] = None) -> "Database":
        """
        Build a Database from app config.
        config_data: app config dict; used for database.path if db_url not given.
        db_url: optional SQLAlchemy URL override.
        """
        if db_url is None and config_data:
            db_config = config_data.get("database") or {}
            db_url = db_config.get("url")
            path = db_config.get("path")
            if not db_url and path:
                path = Path(path).expanduser().resolve()
                path.parent.mkdir(parents=True, exist_ok=True)
                db_url = f"sqlite:///{path}"
        if not db_url:
            db_url = _default_db_url()
        return cls(db_url)

    def create_all(self) -> None:
        """Import all model modules so tables are registered with Base, then create them."""
        from peer_review.core import models as _core_models  # noqa: F401
        from peer_review.platform_state import store as _store  # noqa: F401

        Base.metadata.create_all(self.engine)
        logger.info(f"Database initialized: {self.url.split('?')[0]}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager for a single DB session. Commits on success, rolls back on error."""
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
