"""Engine binding for the snapshot store and the unit of work it writes through."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from cruisesync.config.storage import get_database_config

from .mappings import create_all_tables, start_mappers

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the snapshot store is used before ``startup`` or bound twice."""


@dataclass(frozen=True, slots=True)
class _Binding:
    engine: Engine
    sessions: sessionmaker[Session]


class _Adapter:
    __slots__ = ("binding",)

    def __init__(self) -> None:
        self.binding: _Binding | None = None

    def require(self) -> _Binding:
        if self.binding is None:
            raise StartupError("Snapshot store not started; call startup() first")
        return self.binding


_ADAPTER = _Adapter()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Bind the snapshot table to ``engine`` (or the configured database) and create it.

    Rebinding with ``force=True`` leaves the previous engine open; tests share one
    in-memory engine across startups.
    """

    if _ADAPTER.binding is not None and not force:
        raise StartupError("Snapshot store already started; pass force=True to rebind")
    if engine is None:
        database = get_database_config()
        engine = create_engine(database_uri or database.uri, echo=database.echo)
    start_mappers()
    create_all_tables(engine)
    log.debug("Snapshot store bound to %s", engine.url.render_as_string(hide_password=True))
    _ADAPTER.binding = _Binding(
        engine=engine, sessions=sessionmaker(bind=engine, expire_on_commit=False)
    )
    return engine


def shutdown() -> None:
    binding, _ADAPTER.binding = _ADAPTER.binding, None
    if binding is not None:
        binding.engine.dispose()


class SqlAlchemyUnitOfWork:
    """One session per ``with`` block; rolled back and closed when the block raises.

    Nothing is committed implicitly: the store calls ``commit`` once every kind of a
    write has been staged.
    """

    def __init__(self) -> None:
        self._sessions = _ADAPTER.require().sessions
        self._session: Session | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already in use")
        self._session = self._sessions()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session, self._session = self._session, None
        if session is None:
            return False
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with block")
        return self._session

    def commit(self) -> None:
        self.session.commit()
