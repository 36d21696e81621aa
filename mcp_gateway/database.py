"""
Database engine, session handling and upsert helper.

A single ``Database`` is created at process start and passed to every
component that touches storage.
"""
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

_NATIVE_UPSERT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class Database:
    """Owns the engine and session factory for one relational store"""

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url.rstrip("/").endswith(":"):
                # Share one connection so every session sees the same in-memory DB
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        """Create all tables (tests and local development; production uses Alembic)"""
        import mcp_gateway.models  # noqa: F401  register models on Base.metadata

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """One transaction: commit on success, rollback on any error"""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def scope(self, session: Optional[Session] = None) -> Iterator[Session]:
        """Join the caller's transaction if one is given, else open a new one"""
        if session is not None:
            yield session
            return
        with self.session() as new_session:
            yield new_session


def upsert(
    session: Session,
    model,
    values: dict,
    index_elements: Iterable[str],
    update: dict,
) -> None:
    """
    Insert a row, or update it when the key already exists.

    Args:
        session: Active session (the statement joins its transaction)
        model: ORM model class
        values: Column values for the insert
        index_elements: Conflict target (primary key columns)
        update: Column -> value (or expression) applied on conflict. Callables
            receive the ``excluded`` pseudo-row on native upsert, or
            ``(existing_row, values)`` on the fallback path.
    """
    index_elements = list(index_elements)
    dialect = session.get_bind().dialect.name
    insert = _NATIVE_UPSERT.get(dialect)

    if insert is not None:
        stmt = insert(model).values(**values)
        set_ = {}
        for column, value in update.items():
            set_[column] = value(stmt.excluded, model) if callable(value) else value
        stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)
        session.execute(stmt)
        return

    # Read-check-then-write inside the caller's transaction
    criteria = [getattr(model, col) == values[col] for col in index_elements]
    existing = session.execute(select(model).where(*criteria).with_for_update()).scalar_one_or_none()
    if existing is None:
        session.add(model(**values))
        session.flush()
        return
    for column, value in update.items():
        if callable(value):
            value = value(_FallbackExcluded(values), existing)
        setattr(existing, column, value)
    session.flush()


class _FallbackExcluded:
    """Mimics ``stmt.excluded`` for the non-native upsert path"""

    def __init__(self, values: dict):
        self._values = values

    def __getattr__(self, name):
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(name)
