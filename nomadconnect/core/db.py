from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from loguru import logger

from nomadconnect.core.config import DATABASE_URL, SQL_DEBUG

# --- Base (single source of truth) ---
Base = declarative_base()


# --- Engine ---
@lru_cache(maxsize=1)
def get_engine() -> Engine:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        future=True,
        connect_args={"check_same_thread": False}
        if DATABASE_URL.startswith("sqlite")
        else {},
    )
    if SQL_DEBUG:
        event.listen(engine, "before_cursor_execute", _log_statement)
    return engine


def _log_statement(conn, cursor, statement, parameters, context, executemany):
    logger.debug(f"SQL: {statement} | params={parameters}")


# --- Session factory ---
@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(
        bind=get_engine(),
        autoflush=False,
        autocommit=False,
        future=True,
    )
