"""
SQLite document store for Slotbook.

Each tenant (user) gets its own SQLite database file holding every
collection of that tenant. Documents are stored as JSON text alongside a
version counter used for compare-and-set writes.

The blocking sqlite3 calls run in the default executor so that every store
call is a real suspension point for the event loop.

Invariants:
    - One SQLite file per tenant
    - Every write runs in a single IMMEDIATE transaction
    - Reads of a tenant without a database file never create one
    - A tenant file without the documents table reads as an empty tenant
    - sqlite3 and filesystem errors surface as StoreUnavailableError

How to change safely:
    - Add new columns with defaults for backward compatibility
    - Keep behaviour identical to InMemoryDocumentStore

Table schema:
    documents:
        - collection TEXT
        - doc_id TEXT
        - data_json TEXT
        - version INTEGER (starts at 1)
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (collection, doc_id)
"""

from __future__ import annotations

import asyncio
import functools
import hashlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from ..errors import StoreUnavailableError, VersionConflictError
from .base import Document, now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _TenantMissing(Exception):
    """Tenant database file does not exist."""


class SqliteDocumentStore:
    """Per-tenant SQLite document store.

    Thread safety:
        Each operation opens its own connection in an executor thread.
        SQLite serializes writers; WAL mode allows reads during writes.

    Example:
        >>> store = SqliteDocumentStore("/var/lib/slotbook")
        >>> await store.connect()
        >>> doc = await store.add("user_1", "notifications", {"type": "create"})
    """

    def __init__(
        self,
        data_dir: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the document store.

        Args:
            data_dir: Directory for tenant database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Ensure the data directory exists."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(
                f"Cannot create data directory {self.data_dir}: {e}", backend="sqlite"
            ) from e
        self._connected = True
        logger.info("SQLite document store ready", extra={"data_dir": str(self.data_dir)})

    async def close(self) -> None:
        self._connected = False

    def _get_db_path(self, tenant_id: str) -> Path:
        """Get database file path for a tenant."""
        # Sanitize to prevent path traversal; the digest keeps distinct ids distinct
        safe_id = "".join(c for c in tenant_id if c.isalnum() or c in "-_")[:64]
        digest = hashlib.sha256(tenant_id.encode("utf-8")).hexdigest()[:12]
        return self.data_dir / f"tenant_{safe_id}_{digest}.db"

    @contextmanager
    def _get_connection(self, tenant_id: str, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Get a database connection for a tenant.

        Raises:
            _TenantMissing: If the database doesn't exist and create=False
        """
        db_path = self._get_db_path(tenant_id)

        if not create and not db_path.exists():
            raise _TenantMissing(tenant_id)

        conn = sqlite3.connect(
            str(db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA synchronous = NORMAL")
            if create:
                # WAL is persistent in the file; readers pick it up
                if self.wal_mode:
                    conn.execute("PRAGMA journal_mode = WAL")
                self._ensure_schema(conn)
            elif not self._has_schema(conn):
                # File exists but a concurrent first write has not created the table yet
                raise _TenantMissing(tenant_id)
            yield conn
        finally:
            conn.close()

    @staticmethod
    def _has_schema(conn: sqlite3.Connection) -> bool:
        cursor = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'documents'"
        )
        return cursor.fetchone() is not None

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        """Ensure database schema exists."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data_json TEXT NOT NULL DEFAULT '{}',
                version INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (collection, doc_id)
            );
        """)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        if not self._connected:
            raise StoreUnavailableError("Document store is not connected", backend="sqlite")
        try:
            return await asyncio.get_event_loop().run_in_executor(
                None, functools.partial(fn, *args)
            )
        except (sqlite3.Error, OSError) as e:
            logger.error(f"SQLite store error: {e}", exc_info=True)
            raise StoreUnavailableError(str(e), backend="sqlite") from e

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            doc_id=row["doc_id"],
            data=json.loads(row["data_json"]),
            version=row["version"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _fetch(conn: sqlite3.Connection, collection: str, doc_id: str) -> sqlite3.Row | None:
        cursor = conn.execute(
            "SELECT * FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        return cursor.fetchone()

    @staticmethod
    def _write(
        conn: sqlite3.Connection,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        version: int,
    ) -> Document:
        updated_at = now_ms()
        conn.execute(
            """
            INSERT INTO documents (collection, doc_id, data_json, version, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (collection, doc_id) DO UPDATE SET
                data_json = excluded.data_json,
                version = excluded.version,
                updated_at = excluded.updated_at
            """,
            (collection, doc_id, json.dumps(data), version, updated_at),
        )
        return Document(doc_id=doc_id, data=data, version=version, updated_at=updated_at)

    # --- Blocking implementations ---

    def _get_sync(self, tenant_id: str, collection: str, doc_id: str) -> Document | None:
        try:
            with self._get_connection(tenant_id) as conn:
                row = self._fetch(conn, collection, doc_id)
                return self._row_to_document(row) if row else None
        except _TenantMissing:
            return None

    def _set_sync(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None,
    ) -> Document:
        with self._get_connection(tenant_id, create=True) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._fetch(conn, collection, doc_id)
                current_version = row["version"] if row else 0
                if expected_version is not None and expected_version != current_version:
                    raise VersionConflictError(
                        f"Document {collection}/{doc_id} is at version {current_version}, "
                        f"expected {expected_version}",
                        expected_version=expected_version,
                        actual_version=current_version,
                    )
                doc = self._write(conn, collection, doc_id, data, current_version + 1)
                conn.execute("COMMIT")
                return doc
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _append_sync(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        field_name: str,
        value: Any,
    ) -> Document:
        with self._get_connection(tenant_id, create=True) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._fetch(conn, collection, doc_id)
                if row is None:
                    data: dict[str, Any] = {field_name: [value]}
                    version = 1
                else:
                    data = json.loads(row["data_json"])
                    data.setdefault(field_name, []).append(value)
                    version = row["version"] + 1
                doc = self._write(conn, collection, doc_id, data, version)
                conn.execute("COMMIT")
                return doc
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _delete_sync(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        try:
            with self._get_connection(tenant_id) as conn:
                cursor = conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                )
                return cursor.rowcount > 0
        except _TenantMissing:
            return False

    def _add_sync(self, tenant_id: str, collection: str, data: dict[str, Any]) -> Document:
        with self._get_connection(tenant_id, create=True) as conn:
            return self._write(conn, collection, uuid.uuid4().hex, data, 1)

    def _list_sync(
        self,
        tenant_id: str,
        collection: str,
        order_by: str | None,
        descending: bool,
    ) -> list[Document]:
        direction = "DESC" if descending else "ASC"
        try:
            with self._get_connection(tenant_id) as conn:
                if order_by is None:
                    cursor = conn.execute(
                        f"SELECT * FROM documents WHERE collection = ? ORDER BY doc_id {direction}",
                        (collection,),
                    )
                else:
                    cursor = conn.execute(
                        f"""
                        SELECT * FROM documents WHERE collection = ?
                        ORDER BY json_extract(data_json, ?) {direction}, rowid {direction}
                        """,
                        (collection, f"$.{order_by}"),
                    )
                return [self._row_to_document(row) for row in cursor.fetchall()]
        except _TenantMissing:
            return []

    # --- DocumentStore protocol ---

    async def get(self, tenant_id: str, collection: str, doc_id: str) -> Document | None:
        return await self._run(self._get_sync, tenant_id, collection, doc_id)

    async def set(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        return await self._run(self._set_sync, tenant_id, collection, doc_id, data, expected_version)

    async def append_to_array(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        field_name: str,
        value: Any,
    ) -> Document:
        return await self._run(self._append_sync, tenant_id, collection, doc_id, field_name, value)

    async def delete(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        deleted = await self._run(self._delete_sync, tenant_id, collection, doc_id)
        logger.debug(
            "Deleted document",
            extra={
                "tenant_id": tenant_id,
                "collection": collection,
                "doc_id": doc_id,
                "deleted": deleted,
            },
        )
        return deleted

    async def add(self, tenant_id: str, collection: str, data: dict[str, Any]) -> Document:
        return await self._run(self._add_sync, tenant_id, collection, data)

    async def list_documents(
        self,
        tenant_id: str,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        return await self._run(self._list_sync, tenant_id, collection, order_by, descending)

    def get_db_path(self, tenant_id: str) -> Path:
        """Get the database file path for a tenant."""
        return self._get_db_path(tenant_id)
