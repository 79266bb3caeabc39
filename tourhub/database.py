import logging
import re
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from .config import Settings
from .errors import AppError, ConflictError, DatabaseError

logger = logging.getLogger(__name__)

Base = declarative_base()

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(\w+)")
_POSTGRES_UNIQUE = re.compile(r"Key \((\w+)\)=")


def build_engine(settings: Settings) -> Engine:
    """Create the engine for the configured database URL."""
    url = settings.database_url
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # A single shared connection keeps the in-memory database alive
            engine = create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        else:
            engine = create_engine(url, connect_args=connect_args)
    else:
        try:
            engine = create_engine(
                url,
                pool_pre_ping=True,
                pool_recycle=settings.db_pool_recycle,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                echo=False,
            )
        except Exception as e:
            logger.error(f"❌ Failed to create database engine: {e}")
            raise
        logger.info(
            f"📊 Connection pool: size={settings.db_pool_size}, "
            f"max_overflow={settings.db_max_overflow}, timeout={settings.db_pool_timeout}s"
        )

    if settings.db_log_slow_queries:
        _install_slow_query_logging(engine, settings.db_slow_query_threshold)

    logger.info("✅ Database engine created successfully")
    return engine


def _install_slow_query_logging(engine: Engine, threshold: float) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > threshold:
            logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")


def _run_entity_hooks(session: Session, _flush_context, _instances) -> None:
    """Recompute derived fields and validate every entity about to be written."""
    for obj in list(session.new):
        hook = getattr(obj, "before_save", None)
        if hook:
            hook(is_new=True)
    for obj in list(session.dirty):
        hook = getattr(obj, "before_save", None)
        if hook and session.is_modified(obj):
            hook(is_new=False)


def build_session_factory(engine: Engine) -> sessionmaker:
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    event.listen(factory, "before_flush", _run_entity_hooks)
    return factory


def create_tables(engine: Engine) -> None:
    # Import model modules so every table is registered on Base
    from . import (  # noqa: F401
        models,
        models_booking,
        models_notification,
        models_plan,
        models_review,
    )

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            raise


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def duplicate_field(error: IntegrityError) -> Optional[str]:
    """Extract the offending column from a unique-constraint violation."""
    message = str(error.orig) if error.orig is not None else str(error)
    for pattern in (_SQLITE_UNIQUE, _POSTGRES_UNIQUE):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run a block of writes as one transaction.

    Commits on success. On failure rolls back and translates datastore errors
    into the application error taxonomy.
    """
    try:
        yield db
        db.commit()
    except AppError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        field = duplicate_field(e)
        if field:
            logger.warning(f"⚠️ Duplicate value rejected for field: {field}")
            raise ConflictError(
                f"Duplicate value for field: {field}",
                code="DUPLICATE_ERROR",
                details={"field": field},
            ) from e
        raise ConflictError("Integrity constraint violated") from e
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"⚠️ Concurrent modification detected: {e}")
        raise ConflictError(
            "Resource was modified by another request, reload and try again",
            code="STALE_WRITE",
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Database error: {e}")
        raise DatabaseError() from e
    except Exception:
        db.rollback()
        raise


def ping(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Database ping failed: {e}")
        return False
