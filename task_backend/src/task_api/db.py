from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Generator, List, Optional, Tuple

from .context import OperationContext
from .errors import OperationCancelledError, RecordNotFoundError, StorageError
from .models import TaskEntity
from .repositories import Repository, TaskFilter
from .utils import to_utc

logger = logging.getLogger(__name__)

# sqlite3 calls the progress handler every N virtual machine instructions
_PROGRESS_STEPS = 1000


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    due_date: str = "due_date"
    completed: str = "completed"


_COLS = _Cols()
_SELECT = (
    f"SELECT {_COLS.id}, {_COLS.title}, {_COLS.description}, {_COLS.due_date}, {_COLS.completed} "
    f"FROM {_COLS.table}"
)


# PUBLIC_INTERFACE
def sqlite_path_from_url(database_url: str) -> str:
    """
    Resolve a sqlite connection string to a filesystem path.

    'sqlite:///data/tasks.db' -> 'data/tasks.db'
    'sqlite:////var/lib/tasks.db' -> '/var/lib/tasks.db'
    A value without a scheme is returned unchanged.
    """
    url = database_url.strip()
    if "://" in url:
        scheme, _, rest = url.partition("://")
        if scheme.lower() != "sqlite":
            raise ValueError(f"unsupported database scheme: {scheme!r}")
        if not rest.startswith("/"):
            raise ValueError(f"invalid sqlite url: {database_url!r}")
        url = rest[1:]
    if url in ("", ":memory:"):
        raise ValueError("in-memory sqlite databases are not supported; use PERSISTENCE_BACKEND=memory")
    return url


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    # fixed-width UTC text keeps lexical order equal to chronological order
    if value is None:
        return None
    return to_utc(value).isoformat(timespec="microseconds")


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


def _where(task_filter: TaskFilter) -> Tuple[str, list]:
    clauses = []
    params: list = []

    if task_filter.completed is not None:
        clauses.append(f"{_COLS.completed} = ?")
        params.append(1 if task_filter.completed else 0)

    if task_filter.due_date is not None:
        clauses.append(f"DATE({_COLS.due_date}) = DATE(?)")
        params.append(task_filter.due_date.isoformat())

    where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where_sql, params


class SQLiteRepository(Repository):
    """
    SQLite repository implementing the Repository interface.

    Each operation opens its own connection. The schema is created on first
    use so constructing the repository has no filesystem side effects.
    """

    def __init__(self, database_url: str) -> None:
        self._db_path = sqlite_path_from_url(database_url)
        self._schema_lock = Lock()
        self._schema_ready = False

    @contextmanager
    def _conn(self, ctx: OperationContext) -> Generator[sqlite3.Connection, None, None]:
        ctx.raise_if_done()
        self._ensure_schema()
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"connect to {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.set_progress_handler(lambda: 1 if ctx.done() else 0, _PROGRESS_STEPS)
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            if ctx.done():
                raise OperationCancelledError(f"interrupted: {e}") from e
            raise StorageError(str(e)) from e
        except OverflowError as e:
            # raised while binding an integer parameter wider than 64 bits
            conn.rollback()
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
            try:
                conn = sqlite3.connect(self._db_path)
                try:
                    self._init_db(conn)
                    conn.commit()
                finally:
                    conn.close()
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"initialize {self._db_path}: {e}") from e
            self._schema_ready = True
            logger.info("SQLite task repository ready db=%s", self._db_path)

    @staticmethod
    def _init_db(conn: sqlite3.Connection) -> None:
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {_COLS.table} (
                {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                {_COLS.title} TEXT NOT NULL,
                {_COLS.description} TEXT NULL,
                {_COLS.due_date} TEXT NULL,
                {_COLS.completed} INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.completed})"
        )
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_due_date ON {_COLS.table}({_COLS.due_date})"
        )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": row[_COLS.description],
            "due_date": _parse_dt(row[_COLS.due_date]),
            "completed": bool(row[_COLS.completed]),
        }

    def create(self, ctx: OperationContext, task: TaskEntity) -> TaskEntity:
        with self._conn(ctx) as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description}, {_COLS.due_date}, {_COLS.completed})
                VALUES (?, ?, ?, ?)
                """,
                (task["title"], task["description"], _format_dt(task["due_date"]), 1 if task["completed"] else 0),
            )
            task["id"] = cur.lastrowid
        return task

    def get(self, ctx: OperationContext, task_id: int) -> Optional[TaskEntity]:
        with self._conn(ctx) as conn:
            row = conn.execute(f"{_SELECT} WHERE {_COLS.id} = ?", (task_id,)).fetchone()
            return self._row_to_entity(row) if row else None

    def update(self, ctx: OperationContext, task: TaskEntity) -> None:
        with self._conn(ctx) as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.title} = ?, {_COLS.description} = ?, {_COLS.due_date} = ?, {_COLS.completed} = ?
                WHERE {_COLS.id} = ?
                """,
                (
                    task["title"],
                    task["description"],
                    _format_dt(task["due_date"]),
                    1 if task["completed"] else 0,
                    task["id"],
                ),
            )
            affected = cur.rowcount
        if affected == 0:
            raise RecordNotFoundError(f"task {task['id']} does not exist")

    def delete(self, ctx: OperationContext, task_id: int) -> None:
        with self._conn(ctx) as conn:
            conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))

    def list(self, ctx: OperationContext, task_filter: TaskFilter, limit: int, offset: int) -> List[TaskEntity]:
        where_sql, params = _where(task_filter)
        with self._conn(ctx) as conn:
            rows = conn.execute(
                f"""
                {_SELECT}
                {where_sql}
                ORDER BY {_COLS.due_date} IS NULL, {_COLS.due_date} ASC, {_COLS.id} ASC
                LIMIT ? OFFSET ?
                """,
                [*params, max(limit, 0), max(offset, 0)],
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def count(self, ctx: OperationContext, task_filter: TaskFilter) -> int:
        where_sql, params = _where(task_filter)
        with self._conn(ctx) as conn:
            row = conn.execute(
                f"SELECT COUNT({_COLS.id}) AS cnt FROM {_COLS.table} {where_sql}", params
            ).fetchone()
            return int(row["cnt"]) if row else 0
