from typing import Callable, Iterator, Optional

from loguru import logger

from nomadconnect.core.config import STORE_BACKEND
from nomadconnect.repository.base import Repository

RepositoryProvider = Callable[[], Iterator[Repository]]

_provider: Optional[RepositoryProvider] = None


def _sql_repositories() -> Iterator[Repository]:
    from nomadconnect.core.db import get_session_factory
    from nomadconnect.repository.sql import SqlRepository

    db = get_session_factory()()
    try:
        yield SqlRepository(db)
    finally:
        db.close()


def _shared(repo: Repository) -> RepositoryProvider:
    def provider() -> Iterator[Repository]:
        yield repo

    return provider


def configure_repository(backend: str = STORE_BACKEND, repo: Optional[Repository] = None) -> None:
    """Select the storage backend once, at process startup."""
    global _provider

    if repo is not None:
        _provider = _shared(repo)
    elif backend == "sql":
        from nomadconnect.core.init_db import init_db

        init_db()
        _provider = _sql_repositories
    elif backend == "supabase":
        from nomadconnect.repository.supabase_repo import SupabaseRepository

        _provider = _shared(SupabaseRepository())
    elif backend == "memory":
        from nomadconnect.repository.memory import MemoryRepository

        _provider = _shared(MemoryRepository())
    else:
        raise RuntimeError(f"Unknown STORE_BACKEND: {backend}")

    logger.info(f"Storage backend configured | backend={backend if repo is None else type(repo).__name__}")


def get_repository() -> Iterator[Repository]:
    if _provider is None:
        raise RuntimeError("Storage backend not configured; call configure_repository() at startup")
    yield from _provider()


def is_configured() -> bool:
    return _provider is not None
