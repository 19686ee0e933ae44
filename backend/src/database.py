"""Database session factory and configuration.

Provides database connectivity and session management for the lifecycle
engine, plus the transaction helper the action executor uses to make a state
change and its audit record commit (or roll back) together.
"""

from contextlib import contextmanager
from typing import Callable, ContextManager, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import settings
from domain.lifecycle.errors import PersistenceError
from models.base import Base


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suited to the backend.

    Pool settings only apply to PostgreSQL. In-memory SQLite shares one
    connection across threads so tests and the CLI see a single database.
    """
    engine_kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,  # Set to True for SQL query logging
    }

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10

    return create_engine(database_url, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db(bind: Engine = None) -> None:
    """Create all lifecycle tables that do not exist yet."""
    import models  # noqa: F401  (registers every model on Base.metadata)

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency for FastAPI endpoints.

    Usage:
        @app.get("/retention/policies")
        def list_policies(db: Session = Depends(get_db)):
            return db.query(RetentionPolicyModel).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transaction_factory(session: Session) -> Callable[[], ContextManager[None]]:
    """Build a factory of commit-or-rollback scopes over one session.

    The returned callable yields a context manager; leaving it normally
    commits, leaving it with an exception rolls back. Database failures
    surface as PersistenceError.

    Example:
        transaction = transaction_factory(db)
        with transaction():
            store.update_document_state(...)
            audit_store.append(...)
    """

    @contextmanager
    def _transaction() -> Generator[None, None, None]:
        try:
            yield
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Transaction failed: {e}") from e
        except Exception:
            session.rollback()
            raise

    return _transaction
