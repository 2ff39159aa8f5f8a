"""Persistence adapter for users and their undirected connections."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, TypeVar

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from handshake_graph.config import MAX_CONNECTIONS, GraphStoreSettings, get_store_settings
from handshake_graph.errors import ConnectionLimitReached, DuplicateConnection, InvalidParameter, RootNotFound
from handshake_graph.graph.models import Connection

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention used for every stored datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def canonical_pair(user_a_id: str, user_b_id: str) -> tuple[str, str]:
    """Order a pair so that the same connection always maps to the same row."""
    if user_a_id == user_b_id:
        raise InvalidParameter("Cannot connect a user to themselves")
    return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


@dataclass(frozen=True)
class GraphUser:
    """Display attributes kept alongside the node id."""

    user_id: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ConnectionStore:
    """Typed wrapper around the relational store for graph reads.

    Traversal only uses the lookup half of this class. The write half
    (users, connection creation, account deletion) backs the connection flow
    and test fixtures.
    """

    USER_TABLE = "users"
    CONNECTION_TABLE = "connections"
    _RETRYABLE_SQLITE_ERRORS = ("disk i/o error", "database is locked")

    def __init__(self, engine: Engine, *, max_connections: int = MAX_CONNECTIONS) -> None:
        self._engine = engine
        self._max_connections = max_connections
        self._metadata = MetaData()
        self._user_table = Table(
            self.USER_TABLE,
            self._metadata,
            Column("id", String, primary_key=True),
            Column("name", String, nullable=True),
            Column("photo_url", String, nullable=True),
            Column("last_seen", DateTime(timezone=False), nullable=True),
            Column("created_at", DateTime(timezone=False), nullable=False),
            Column("deleted_at", DateTime(timezone=False), nullable=True),
        )
        self._connection_table = Table(
            self.CONNECTION_TABLE,
            self._metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("user_a_id", String, ForeignKey("users.id"), nullable=False),
            Column("user_b_id", String, ForeignKey("users.id"), nullable=False),
            Column("created_at", DateTime(timezone=False), nullable=False),
            UniqueConstraint("user_a_id", "user_b_id", name="uq_connection_pair"),
            CheckConstraint("user_a_id < user_b_id", name="ck_connection_canonical"),
            Index("ix_connections_user_a", "user_a_id"),
            Index("ix_connections_user_b", "user_b_id"),
        )
        self._metadata.create_all(self._engine, checkfirst=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _execute_with_retry(
        self,
        op_name: str,
        fn: Callable[[Engine], T],
        *,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.2,
    ) -> T:
        last_exc: Optional[OperationalError] = None
        for attempt in range(1, max_attempts + 1):
            try:
                return fn(self._engine)
            except OperationalError as exc:
                if getattr(exc, "orig", None) is not None:
                    message = str(exc.orig).lower()
                else:
                    message = str(exc).lower()

                if not any(token in message for token in self._RETRYABLE_SQLITE_ERRORS):
                    raise

                last_exc = exc
                LOGGER.error(
                    "Retryable SQLite error during %s (attempt %s/%s): %s",
                    op_name,
                    attempt,
                    max_attempts,
                    message or exc,
                )
                self._engine.dispose()

                if attempt == max_attempts:
                    break

                time.sleep(base_delay_seconds * (2 ** (attempt - 1)))

        assert last_exc is not None
        LOGGER.error(
            "Exhausted retries for %s after %s attempts; re-raising.",
            op_name,
            max_attempts,
        )
        raise last_exc

    def _row_to_connection(self, row) -> Connection:
        return Connection(user_a_id=row.user_a_id, user_b_id=row.user_b_id, created_at=row.created_at)

    def _count_for(self, conn, user_id: str) -> int:
        c = self._connection_table.c
        stmt = select(func.count()).select_from(self._connection_table).where(
            or_(c.user_a_id == user_id, c.user_b_id == user_id)
        )
        return int(conn.execute(stmt).scalar() or 0)

    # ------------------------------------------------------------------
    # Graph lookups
    # ------------------------------------------------------------------
    def neighbors(self, user_ids: Iterable[str]) -> List[Connection]:
        """Return every connection incident to any of ``user_ids`` in one query."""
        ids = list(user_ids)
        if not ids:
            return []

        def _op(engine: Engine) -> List[Connection]:
            c = self._connection_table.c
            with engine.connect() as conn:
                stmt = select(c.user_a_id, c.user_b_id, c.created_at).where(
                    or_(c.user_a_id.in_(ids), c.user_b_id.in_(ids))
                )
                return [self._row_to_connection(row) for row in conn.execute(stmt)]

        return self._execute_with_retry("neighbors", _op)

    def edges_among(self, user_ids: Iterable[str], *, batch_size: int = 1000) -> List[Connection]:
        """Return every connection whose both endpoints are in ``user_ids``.

        Rows are fetched by their canonical low endpoint in chunks, so each
        connection is seen exactly once.
        """
        node_set = set(user_ids)
        if len(node_set) < 2:
            return []
        ordered = sorted(node_set)

        def _op(engine: Engine) -> List[Connection]:
            c = self._connection_table.c
            found: List[Connection] = []
            with engine.connect() as conn:
                for start in range(0, len(ordered), batch_size):
                    chunk = ordered[start:start + batch_size]
                    stmt = select(c.user_a_id, c.user_b_id, c.created_at).where(c.user_a_id.in_(chunk))
                    for row in conn.execute(stmt):
                        if row.user_b_id in node_set:
                            found.append(self._row_to_connection(row))
            return found

        return self._execute_with_retry("edges_among", _op)

    def existing_user_ids(self, user_ids: Iterable[str]) -> Set[str]:
        """Subset of ``user_ids`` that exist and are not deleted."""
        ids = list(set(user_ids))
        if not ids:
            return set()

        def _op(engine: Engine) -> Set[str]:
            u = self._user_table.c
            with engine.connect() as conn:
                stmt = select(u.id).where(u.id.in_(ids), u.deleted_at.is_(None))
                return {row.id for row in conn.execute(stmt)}

        return self._execute_with_retry("existing_user_ids", _op)

    def user_summaries(self, user_ids: Iterable[str]) -> List[dict]:
        ids = list(set(user_ids))
        if not ids:
            return []

        def _op(engine: Engine) -> List[dict]:
            u = self._user_table.c
            with engine.connect() as conn:
                stmt = (
                    select(u.id, u.name, u.photo_url, u.last_seen)
                    .where(u.id.in_(ids), u.deleted_at.is_(None))
                    .order_by(u.id)
                )
                return [dict(row._mapping) for row in conn.execute(stmt)]

        return self._execute_with_retry("user_summaries", _op)

    def connection_counts(self, user_ids: Iterable[str]) -> Dict[str, int]:
        """Connection count per user; users without connections map to 0."""
        ids = list(set(user_ids))
        if not ids:
            return {}

        def _op(engine: Engine) -> Dict[str, int]:
            c = self._connection_table.c
            counts = {user_id: 0 for user_id in ids}
            with engine.connect() as conn:
                for column in (c.user_a_id, c.user_b_id):
                    stmt = select(column, func.count()).where(column.in_(ids)).group_by(column)
                    for user_id, count in conn.execute(stmt):
                        counts[user_id] += int(count)
            return counts

        return self._execute_with_retry("connection_counts", _op)

    def connection_times(
        self, user_id: str, *, since: datetime, until: Optional[datetime] = None
    ) -> List[datetime]:
        """Creation timestamps of ``user_id``'s connections in ``[since, until)``."""

        def _op(engine: Engine) -> List[datetime]:
            c = self._connection_table.c
            stmt = select(c.created_at).where(
                or_(c.user_a_id == user_id, c.user_b_id == user_id),
                c.created_at >= to_naive_utc(since),
            )
            if until is not None:
                stmt = stmt.where(c.created_at < to_naive_utc(until))
            with engine.connect() as conn:
                return [row.created_at for row in conn.execute(stmt.order_by(c.created_at))]

        return self._execute_with_retry("connection_times", _op)

    def count_connections_before(self, user_id: str, before: datetime) -> int:
        def _op(engine: Engine) -> int:
            c = self._connection_table.c
            stmt = select(func.count()).select_from(self._connection_table).where(
                or_(c.user_a_id == user_id, c.user_b_id == user_id),
                c.created_at < to_naive_utc(before),
            )
            with engine.connect() as conn:
                return int(conn.execute(stmt).scalar() or 0)

        return self._execute_with_retry("count_connections_before", _op)

    # ------------------------------------------------------------------
    # Writes (connection flow)
    # ------------------------------------------------------------------
    def upsert_users(self, users: Sequence[GraphUser]) -> int:
        if not users:
            return 0
        now = utcnow()
        rows = [
            {
                "id": user.user_id,
                "name": user.name,
                "photo_url": user.photo_url,
                "last_seen": user.last_seen,
                "created_at": user.created_at or now,
                "deleted_at": None,
            }
            for user in users
        ]

        def _op(engine: Engine) -> int:
            with engine.begin() as conn:
                stmt = insert(self._user_table).values(rows)
                update_cols = {
                    col: func.coalesce(stmt.excluded[col], self._user_table.c[col])
                    for col in ("name", "photo_url", "last_seen")
                }
                update_cols["deleted_at"] = None
                conn.execute(
                    stmt.on_conflict_do_update(
                        index_elements=[self._user_table.c.id],
                        set_=update_cols,
                    )
                )
            return len(rows)

        return self._execute_with_retry("upsert_users", _op)

    def add_connection(
        self, user_a_id: str, user_b_id: str, *, created_at: Optional[datetime] = None
    ) -> Connection:
        """Create one canonical connection, counted against both endpoints' limits.

        Both endpoints must be existing, non-deleted users (``RootNotFound`` otherwise).
        """
        low, high = canonical_pair(user_a_id, user_b_id)
        stamp = to_naive_utc(created_at) if created_at is not None else utcnow()

        def _op(engine: Engine) -> Connection:
            c = self._connection_table.c
            with engine.begin() as conn:
                u = self._user_table.c
                live = set(
                    conn.execute(
                        select(u.id).where(u.id.in_((low, high)), u.deleted_at.is_(None))
                    ).scalars()
                )
                for endpoint in (low, high):
                    if endpoint not in live:
                        raise RootNotFound(endpoint)
                existing = conn.execute(
                    select(c.id).where(c.user_a_id == low, c.user_b_id == high)
                ).first()
                if existing is not None:
                    raise DuplicateConnection(f"{low} and {high} are already connected")
                for endpoint in (low, high):
                    if self._count_for(conn, endpoint) >= self._max_connections:
                        raise ConnectionLimitReached(
                            f"Connection limit reached for {endpoint} ({self._max_connections})"
                        )
                conn.execute(
                    self._connection_table.insert().values(
                        user_a_id=low, user_b_id=high, created_at=stamp
                    )
                )
            return Connection(user_a_id=low, user_b_id=high, created_at=stamp)

        return self._execute_with_retry("add_connection", _op)

    def delete_user(self, user_id: str) -> int:
        """Soft-delete a user and remove every connection touching them.

        Returns the number of connections removed.
        """

        def _op(engine: Engine) -> int:
            c = self._connection_table.c
            with engine.begin() as conn:
                conn.execute(
                    update(self._user_table)
                    .where(self._user_table.c.id == user_id)
                    .values(deleted_at=utcnow())
                )
                result = conn.execute(
                    delete(self._connection_table).where(
                        or_(c.user_a_id == user_id, c.user_b_id == user_id)
                    )
                )
                return int(result.rowcount or 0)

        removed = self._execute_with_retry("delete_user", _op)
        LOGGER.info("Deleted user %s and %d connection(s)", user_id, removed)
        return removed


def create_store_engine(settings: Optional[GraphStoreSettings] = None) -> Engine:
    settings = settings or get_store_settings()
    return create_engine(settings.url, future=True)


def get_connection_store(engine: Optional[Engine] = None) -> ConnectionStore:
    return ConnectionStore(engine or create_store_engine())
