"""
face2name/row_store.py

SQLite table mapping identity key -> name, accessed through SQLAlchemy.

Layout (kept compatible with databases written by the mobile app):
    identities(_id INTEGER PRIMARY KEY NOT NULL, name TEXT)
    PRAGMA user_version = 1
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .errors import EngineError
from .log import get_logger

log = get_logger(__name__)

SCHEMA_VERSION = 1
TABLE_NAME = "identities"
KEY_COLUMN = "_id"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    {KEY_COLUMN} INTEGER PRIMARY KEY NOT NULL,
    name TEXT
)
"""

_metadata = sa.MetaData()
identities = sa.Table(
    TABLE_NAME, _metadata,
    sa.Column(KEY_COLUMN, sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.Text, nullable=True),
)


@contextmanager
def _engine_errors(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        raise EngineError(f"could not {action}: {e}") from e


class IdentityTable:
    """
    Thin accessor over the identities table.

    Example
    -------
    table = IdentityTable("data/Face2Name")
    table.upsert(42, "Ada")
    table.select_by_key(42)     # (42, 'Ada')
    list(table.select_all())    # [(42, 'Ada')]
    """

    BUSY_TIMEOUT_S = 30.0
    VERSION = SCHEMA_VERSION

    def __init__(self, path: str):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = str(path)
        self._engine = sa.create_engine(
            f"sqlite:///{self.path}",
            connect_args={"check_same_thread": False,
                          "timeout": self.BUSY_TIMEOUT_S},
        )
        self._write_lock = threading.Lock()
        try:
            self.create_schema_if_absent()
        except EngineError:
            self._engine.dispose()
            raise

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def create_schema_if_absent(self):
        with self._write_lock, _engine_errors("create schema"):
            with self._engine.begin() as conn:
                conn.exec_driver_sql(SCHEMA)
                version = conn.exec_driver_sql("PRAGMA user_version").scalar()
                if version == self.VERSION:
                    return
                if version > self.VERSION:
                    raise EngineError(
                        f"database schema version {version} is newer than "
                        f"supported version {self.VERSION}")
                if version:
                    self.on_upgrade(conn, version, self.VERSION)
                else:
                    log.info("created identity schema", path=self.path,
                             version=self.VERSION)
                conn.exec_driver_sql(f"PRAGMA user_version = {int(self.VERSION)}")

    def on_upgrade(self, conn, old_version: int, new_version: int):
        """Migration hook. Version 1 is the only layout so far."""
        log.info("identity schema version changed",
                 old=old_version, new=new_version)

    def schema_version(self) -> int:
        with _engine_errors("read schema version"):
            with self._engine.connect() as conn:
                return int(conn.exec_driver_sql("PRAGMA user_version").scalar())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, key: int, name: Optional[str]):
        """Insert or replace the whole row. A None name overwrites."""
        stmt = identities.insert().prefix_with("OR REPLACE").values(
            {KEY_COLUMN: key, "name": name})
        with self._write_lock, _engine_errors(f"store row {key}"):
            with self._engine.begin() as conn:
                conn.execute(stmt)

    def delete_by_key(self, key: int) -> int:
        stmt = identities.delete().where(identities.c[KEY_COLUMN] == key)
        with self._write_lock, _engine_errors(f"delete row {key}"):
            with self._engine.begin() as conn:
                return conn.execute(stmt).rowcount

    def delete_all(self) -> int:
        with self._write_lock, _engine_errors("clear rows"):
            with self._engine.begin() as conn:
                return conn.execute(identities.delete()).rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select_all(self) -> Iterator[Tuple[int, Optional[str]]]:
        """
        Yield every (key, name) row in engine order.
        Each call issues a fresh query; the generator itself is one-shot.
        """
        stmt = sa.select(identities.c[KEY_COLUMN], identities.c.name)
        with _engine_errors("read rows"):
            with self._engine.connect() as conn:
                for key, name in conn.execute(stmt):
                    yield key, name

    def select_by_key(self, key: int) -> Optional[Tuple[int, Optional[str]]]:
        stmt = sa.select(identities.c[KEY_COLUMN], identities.c.name).where(
            identities.c[KEY_COLUMN] == key)
        with _engine_errors(f"read row {key}"):
            with self._engine.connect() as conn:
                row = conn.execute(stmt).first()
        return (row[0], row[1]) if row is not None else None

    def count_rows(self) -> int:
        stmt = sa.select(sa.func.count()).select_from(identities)
        with _engine_errors("count rows"):
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar())

    def exists_by_key(self, key: int) -> bool:
        stmt = sa.select(sa.func.count()).select_from(identities).where(
            identities.c[KEY_COLUMN] == key)
        with _engine_errors(f"look up row {key}"):
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar()) > 0

    def close(self):
        self._engine.dispose()
