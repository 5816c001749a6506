"""Database access: engine construction, scoped transactions and schema setup.

Every create/cancel/status change runs inside :meth:`Database.transaction`,
which acquires one connection, commits when the block exits cleanly, rolls
back on any exception, and releases the connection on every path.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy import Connection, Engine, MetaData, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from ordering.errors import TransactionTimeoutError

logger = structlog.get_logger(__name__)

metadata = MetaData()


class Transaction:
    """An open transaction with a deadline.

    Long multi-statement loops call :meth:`check_deadline` between steps so a
    slow run aborts (and rolls back) instead of holding row locks forever.
    """

    def __init__(self, connection: Connection, operation: str, timeout: float):
        self.connection = connection
        self.operation = operation
        self.timeout = timeout
        self._started = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def check_deadline(self) -> None:
        if self.elapsed > self.timeout:
            raise TransactionTimeoutError(self.operation, self.timeout)


def _emit_sqlite_begin(engine: Engine) -> None:
    """Take over BEGIN from pysqlite.

    pysqlite defers BEGIN until the first DML statement, which lets two
    writers deadlock on lock promotion. Connections opened by
    :meth:`Database.transaction` carry the ``begin_immediate`` option and take
    the write lock at BEGIN IMMEDIATE. Plain reads use a deferred BEGIN and
    never wait on writers.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        if connection.get_execution_options().get("begin_immediate"):
            connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            connection.exec_driver_sql("BEGIN")


class Database:
    def __init__(self, url: str, transaction_timeout: float = 10.0, echo: bool = False):
        self.url = make_url(url)
        self.transaction_timeout = transaction_timeout

        engine_kwargs = {"echo": echo}
        if self.url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(self.url, **engine_kwargs)
        if self.dialect == "sqlite":
            _emit_sqlite_begin(self.engine)

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            transaction_timeout=settings.transaction_timeout,
            echo=settings.echo_sql,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """A read connection; nothing written through it is committed."""
        with self.engine.connect() as connection:
            yield connection

    @contextmanager
    def transaction(self, operation: str = "transaction", timeout: float | None = None) -> Iterator[Transaction]:
        timeout = timeout or self.transaction_timeout
        try:
            with self.engine.connect() as connection, connection.execution_options(begin_immediate=True).begin():
                if self.dialect == "postgresql":
                    # Bounds any single statement, including row-lock waits
                    connection.exec_driver_sql(f"SET LOCAL statement_timeout = {int(timeout * 1000)}")
                tx = Transaction(connection, operation, timeout)
                yield tx
                tx.check_deadline()
        except Exception as exc:
            logger.warning(
                "Transaction rolled back",
                operation=operation,
                error=type(exc).__name__,
                reason=str(exc),
            )
            raise

    def create_all(self) -> None:
        """Create every table registered on the shared metadata."""
        metadata.create_all(self.engine)

    def drop_all(self) -> None:
        metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
