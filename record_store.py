"""
HISAB - Record Store Clients
============================

PURPOSE:
--------
Generic row CRUD over the five collections (projects, transactions,
milestones, action items, quotations) plus binary attachment storage.
Everything above this module only sees plain dicts.

IMPLEMENTATIONS:
----------------
- SQLiteRecordStore: local sqlite3 file + blobs on disk. Default backend,
  schema created on first use.
- SupabaseRecordStore: hosted PostgREST tables + Storage buckets over
  HTTPS (requests).

ERRORS:
-------
Every I/O failure is raised as RecordStoreError. Asking for a collection
or column that does not exist is a programming error and raises
ValueError. Nothing here retries.
"""

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from entities_core import (
    ACTION_ITEMS,
    MILESTONES,
    PROJECTS,
    QUOTATIONS,
    TRANSACTIONS,
)

logger = logging.getLogger(__name__)

# ============================================================================
# EXCEPTIONS
# ============================================================================

class HisabError(Exception):
    """Base error for the application"""


class RecordStoreError(HisabError):
    """The store could not complete a read or write"""


class RecordNotFoundError(HisabError):
    """A referenced record does not exist"""


# ============================================================================
# SCHEMA
# ============================================================================

SCHEMA = {
    PROJECTS: (
        "id", "name", "total_value", "status", "client_name", "notes",
        "quotation_url", "created_at",
    ),
    TRANSACTIONS: (
        "id", "project_id", "date", "type", "amount", "mode", "notes",
        "attachment_url", "documents", "created_at",
    ),
    MILESTONES: (
        "id", "project_id", "name", "percentage", "amount", "status",
        "due_date", "notes", "created_at",
    ),
    ACTION_ITEMS: (
        "id", "project_id", "description", "due_date", "status", "created_at",
    ),
    QUOTATIONS: (
        "id", "project_id", "quote_date", "amount", "description", "status",
        "notes", "document_url", "created_at",
    ),
}

JSON_COLUMNS = {
    TRANSACTIONS: ("documents",),
}

SQLITE_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    total_value REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending',
    client_name TEXT,
    notes TEXT,
    quotation_url TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id),
    date TEXT NOT NULL,
    type TEXT NOT NULL,
    amount REAL NOT NULL DEFAULT 0,
    mode TEXT,
    notes TEXT,
    attachment_url TEXT,
    documents TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS milestones (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id),
    name TEXT NOT NULL,
    percentage REAL,
    amount REAL,
    status TEXT NOT NULL DEFAULT 'pending',
    due_date TEXT,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS action_items (
    id TEXT PRIMARY KEY,
    project_id TEXT REFERENCES projects(id),
    description TEXT NOT NULL,
    due_date TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS quotations (
    id TEXT PRIMARY KEY,
    project_id TEXT REFERENCES projects(id),
    quote_date TEXT NOT NULL,
    amount REAL NOT NULL DEFAULT 0,
    description TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'sent',
    notes TEXT,
    document_url TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_project ON transactions(project_id);
CREATE INDEX IF NOT EXISTS idx_milestones_project ON milestones(project_id);
CREATE INDEX IF NOT EXISTS idx_action_items_project ON action_items(project_id);
"""


def _check_collection(name: str) -> None:
    if name not in SCHEMA:
        raise ValueError(f"Unknown collection: {name}")


def _check_columns(name: str, columns) -> None:
    unknown = [c for c in columns if c not in SCHEMA[name]]
    if unknown:
        raise ValueError(f"Unknown columns for {name}: {', '.join(unknown)}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_blob_path(path: str) -> str:
    clean = path.strip().lstrip("/")
    if not clean or ".." in Path(clean).parts:
        raise ValueError(f"Invalid blob path: {path!r}")
    return clean


# ============================================================================
# CONTRACT
# ============================================================================

class RecordStore(ABC):
    """Contract every backend implements"""

    @abstractmethod
    def fetch_collection(
        self,
        name: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[dict]:
        """Rows of a collection, optionally filtered by exact field values"""

    @abstractmethod
    def insert_record(self, name: str, fields: Dict[str, Any]) -> dict:
        """Inserts a row and returns it as stored (with id and created_at)"""

    @abstractmethod
    def update_record(self, name: str, record_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_record(self, name: str, record_id: str) -> None:
        pass

    @abstractmethod
    def delete_where(self, name: str, **equals) -> Optional[int]:
        """Bulk delete of every row matching all the given field values"""

    @abstractmethod
    def upload_blob(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Stores bytes and returns a location reference"""

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str:
        pass

    @abstractmethod
    def delete_blob(self, bucket: str, path: str) -> None:
        pass

    def get_record(self, name: str, record_id: str) -> dict:
        rows = self.fetch_collection(name, filters={"id": record_id}, limit=1)
        if not rows:
            raise RecordNotFoundError(f"{name} record {record_id} not found")
        return rows[0]


# ============================================================================
# SQLITE BACKEND
# ============================================================================

class SQLiteRecordStore(RecordStore):
    """
    Local backend: one sqlite3 file for rows, a directory tree for blobs.

    Foreign keys are declared but not enforced (sqlite default), the same
    as the hosted store's behaviour the application was written against:
    cascades are issued by the service layer.
    """

    def __init__(self, db_path: str = "hisab.db", blob_dir: str = "hisab_files"):
        self.db_path = str(db_path)
        self.blob_dir = Path(blob_dir)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        """Creates the tables if they do not exist"""
        try:
            with closing(self._connect()) as conn:
                conn.executescript(SQLITE_DDL)
                conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not initialize database {self.db_path}: {e}") from e

    def _decode(self, name: str, row: sqlite3.Row) -> dict:
        data = dict(row)
        for column in JSON_COLUMNS.get(name, ()):
            raw = data.get(column)
            data[column] = json.loads(raw) if raw else []
        return data

    def _encode(self, name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(fields)
        for column in JSON_COLUMNS.get(name, ()):
            if column in data and data[column] is not None:
                data[column] = json.dumps(data[column], ensure_ascii=False)
        return data

    @staticmethod
    def _where(filters: Dict[str, Any]):
        clauses = []
        params = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)
        return " AND ".join(clauses), params

    def fetch_collection(self, name, filters=None, order_by=None, descending=False, limit=None):
        _check_collection(name)
        filters = filters or {}
        _check_columns(name, filters.keys())

        sql = f"SELECT * FROM {name}"
        params: list = []
        if filters:
            where, params = self._where(filters)
            sql += f" WHERE {where}"
        if order_by:
            _check_columns(name, [order_by])
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not read {name}: {e}") from e

        return [self._decode(name, row) for row in rows]

    def insert_record(self, name, fields):
        _check_collection(name)
        data = {"id": uuid.uuid4().hex, "created_at": _now_iso(), **fields}
        _check_columns(name, data.keys())

        columns = list(data.keys())
        placeholders = ", ".join("?" for _ in columns)
        encoded = self._encode(name, data)
        sql = f"INSERT INTO {name} ({', '.join(columns)}) VALUES ({placeholders})"

        try:
            with closing(self._connect()) as conn:
                with conn:
                    conn.execute(sql, [encoded[c] for c in columns])
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not insert into {name}: {e}") from e

        logger.info("Inserted %s %s", name, data["id"])
        return self.get_record(name, data["id"])

    def update_record(self, name, record_id, fields):
        _check_collection(name)
        data = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        if not data:
            return
        _check_columns(name, data.keys())

        encoded = self._encode(name, data)
        assignments = ", ".join(f"{c} = ?" for c in data)
        sql = f"UPDATE {name} SET {assignments} WHERE id = ?"

        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute(sql, [encoded[c] for c in data] + [record_id])
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not update {name} {record_id}: {e}") from e

        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"{name} record {record_id} not found")
        logger.info("Updated %s %s (%s)", name, record_id, ", ".join(data))

    def delete_record(self, name, record_id):
        _check_collection(name)
        try:
            with closing(self._connect()) as conn:
                with conn:
                    conn.execute(f"DELETE FROM {name} WHERE id = ?", [record_id])
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not delete {name} {record_id}: {e}") from e
        logger.info("Deleted %s %s", name, record_id)

    def delete_where(self, name, **equals):
        _check_collection(name)
        if not equals:
            raise ValueError("delete_where needs at least one condition")
        _check_columns(name, equals.keys())

        where, params = self._where(equals)
        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute(f"DELETE FROM {name} WHERE {where}", params)
        except sqlite3.Error as e:
            raise RecordStoreError(f"Could not delete from {name}: {e}") from e

        logger.info("Deleted %d rows from %s where %s", cursor.rowcount, name, equals)
        return cursor.rowcount

    # ------------------------------------------------------------------------
    # BLOBS
    # ------------------------------------------------------------------------

    def _blob_file(self, bucket: str, path: str) -> Path:
        return self.blob_dir / _check_blob_path(bucket) / _check_blob_path(path)

    def upload_blob(self, bucket, path, data, content_type):
        target = self._blob_file(bucket, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise RecordStoreError(f"Could not store {bucket}/{path}: {e}") from e
        logger.info("Stored blob %s/%s (%s, %d bytes)", bucket, path, content_type, len(data))
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket, path):
        return self._blob_file(bucket, path).resolve().as_uri()

    def delete_blob(self, bucket, path):
        try:
            self._blob_file(bucket, path).unlink(missing_ok=True)
        except OSError as e:
            raise RecordStoreError(f"Could not delete {bucket}/{path}: {e}") from e


# ============================================================================
# HOSTED BACKEND (SUPABASE)
# ============================================================================

class SupabaseRecordStore(RecordStore):
    """
    Hosted backend over the PostgREST and Storage HTTP APIs.

    Tables are named <table_prefix><collection>; blobs live in public
    buckets. Every call is a single request with `timeout` seconds.
    """

    def __init__(self, url: str, api_key: str, table_prefix: str = "hisab_", timeout: float = 30):
        if not url or not api_key:
            raise ValueError("Supabase URL and API key are required")
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.table_prefix = table_prefix
        self.timeout = timeout

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _table_url(self, name: str) -> str:
        _check_collection(name)
        return f"{self.url}/rest/v1/{self.table_prefix}{name}"

    @staticmethod
    def _eq_params(filters: Dict[str, Any]) -> Dict[str, str]:
        params = {}
        for column, value in filters.items():
            if value is None:
                params[column] = "is.null"
            elif isinstance(value, bool):
                params[column] = f"eq.{str(value).lower()}"
            else:
                params[column] = f"eq.{value}"
        return params

    def _request(self, method: str, url: str, what: str, **kwargs) -> requests.Response:
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise RecordStoreError(f"Timeout while trying to {what}") from e
        except requests.exceptions.RequestException as e:
            raise RecordStoreError(f"Connection error while trying to {what}: {e}") from e

        if resp.status_code >= 400:
            raise RecordStoreError(f"Could not {what}: {resp.status_code} {resp.text}")
        return resp

    def fetch_collection(self, name, filters=None, order_by=None, descending=False, limit=None):
        filters = filters or {}
        _check_collection(name)
        _check_columns(name, filters.keys())

        params = {"select": "*", **self._eq_params(filters)}
        if order_by:
            _check_columns(name, [order_by])
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(int(limit))

        resp = self._request("GET", self._table_url(name), f"read {name}",
                             headers=self._headers(), params=params)
        return resp.json()

    def insert_record(self, name, fields):
        _check_collection(name)
        _check_columns(name, fields.keys())
        resp = self._request(
            "POST", self._table_url(name), f"insert into {name}",
            headers=self._headers({"Prefer": "return=representation"}),
            json=fields,
        )
        rows = resp.json()
        created = rows[0] if isinstance(rows, list) else rows
        logger.info("Inserted %s %s", name, created.get("id"))
        return created

    def update_record(self, name, record_id, fields):
        _check_collection(name)
        data = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
        if not data:
            return
        _check_columns(name, data.keys())
        resp = self._request(
            "PATCH", self._table_url(name), f"update {name} {record_id}",
            headers=self._headers({"Prefer": "return=representation"}),
            params=self._eq_params({"id": record_id}),
            json=data,
        )
        if resp.json() == []:
            raise RecordNotFoundError(f"{name} record {record_id} not found")
        logger.info("Updated %s %s (%s)", name, record_id, ", ".join(data))

    def delete_record(self, name, record_id):
        self._request(
            "DELETE", self._table_url(name), f"delete {name} {record_id}",
            headers=self._headers(),
            params=self._eq_params({"id": record_id}),
        )
        logger.info("Deleted %s %s", name, record_id)

    def delete_where(self, name, **equals):
        _check_collection(name)
        if not equals:
            raise ValueError("delete_where needs at least one condition")
        _check_columns(name, equals.keys())
        resp = self._request(
            "DELETE", self._table_url(name), f"delete from {name}",
            headers=self._headers({"Prefer": "return=representation"}),
            params=self._eq_params(equals),
        )
        deleted = len(resp.json() or [])
        logger.info("Deleted %d rows from %s where %s", deleted, name, equals)
        return deleted

    def upload_blob(self, bucket, path, data, content_type):
        path = _check_blob_path(path)
        self._request(
            "POST", f"{self.url}/storage/v1/object/{bucket}/{path}", f"upload {bucket}/{path}",
            headers=self._headers({"Content-Type": content_type, "x-upsert": "true"}),
            data=data,
        )
        logger.info("Uploaded blob %s/%s (%d bytes)", bucket, path, len(data))
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket, path):
        return f"{self.url}/storage/v1/object/public/{bucket}/{_check_blob_path(path)}"

    def delete_blob(self, bucket, path):
        path = _check_blob_path(path)
        self._request(
            "DELETE", f"{self.url}/storage/v1/object/{bucket}/{path}", f"delete {bucket}/{path}",
            headers=self._headers(),
        )
