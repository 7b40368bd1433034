"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from cleanslate.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Storage operation failed."""


class RecordNotFoundError(KeyError):
    """Requested record does not exist."""


class RecordExistsError(DatabaseError):
    """Write rejected by a uniqueness constraint."""


FilterParam = str | int | float | None


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _validate_field_name(field: str) -> None:
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", field):
        msg = f"Invalid field name: {field}"
        raise ValueError(msg)


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return f"%{value}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, FilterParam]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(=|!=|>|<|>=|<=|~)\s*(['"])([^'"]*)\3\s*$""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[FilterParam]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[FilterParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params: list[FilterParam] = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def _parse_match(match: dict[str, Any] | None) -> tuple[str, list[Any]]:
    """Build an equality WHERE clause from a field -> value mapping (None matches NULL)."""
    if not match:
        return "", []

    conditions = []
    params = []
    for field, value in match.items():
        _validate_field_name(field)
        if value is None:
            conditions.append(f"{field} IS NULL")
        else:
            conditions.append(f"{field} = ?")
            params.append(_to_db_value(value))
    return " AND ".join(conditions), params


def _build_where(filter_query: str, match: dict[str, Any] | None) -> tuple[str, list[Any]]:
    """Combine a filter expression and an equality mapping into one WHERE clause."""
    clauses = []
    params: list[Any] = []
    for clause, clause_params in (parse_filter(filter_query), _parse_match(match)):
        if clause:
            clauses.append(clause)
            params.extend(clause_params)
    if not clauses:
        return "", []
    return "WHERE " + " AND ".join(clauses), params


def _safe_sort(sort: str) -> str:
    """Validate an ORDER BY clause made of `column [ASC|DESC]` terms."""
    if not sort:
        return "id ASC"
    terms = [term.strip() for term in sort.split(",")]
    for term in terms:
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*(\s+(ASC|DESC))?$", term, re.IGNORECASE):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
    return ", ".join(terms)


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_write_locks: dict[tuple[int, int, str], asyncio.Lock] = {}
_db_lock = asyncio.Lock()
_in_atomic: ContextVar[bool] = ContextVar("cleanslate_db_in_atomic", default=False)


def _cache_key(db_path: str | None = None) -> tuple[int, int, str]:
    loop = asyncio.get_running_loop()
    return (threading.get_ident(), id(loop), str(get_db_path(db_path)))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    loop = asyncio.get_running_loop()
    path = get_db_path(db_path)
    cache_key = _cache_key(db_path)

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn
        _write_locks[cache_key] = asyncio.Lock()

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": cache_key[0], "loop_id": id(loop)},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            if cache_key in _db_connections:
                conn = _db_connections.pop(cache_key)
                _write_locks.pop(cache_key, None)
                await conn.close()
                logger.info("Closed SQLite connection", extra={"db_path": cache_key[2]})
    except Exception as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": cache_key[2]})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from cleanslate.core import schema

    await schema.init_db(db_path=db_path)


@asynccontextmanager
async def _writing(conn: aiosqlite.Connection) -> AsyncIterator[None]:
    """Serialize a single write and commit it, unless an atomic block owns the transaction."""
    if _in_atomic.get():
        yield
        return

    async with _write_locks[_cache_key()]:
        try:
            yield
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()


@asynccontextmanager
async def atomic() -> AsyncIterator[None]:
    """Run the enclosed writes in one transaction, rolling back on any error.

    Nested blocks join the outer transaction.
    """
    if _in_atomic.get():
        yield
        return

    conn = await get_connection()
    async with _write_locks[_cache_key()]:
        token = _in_atomic.set(True)
        try:
            yield
        except BaseException:
            await conn.rollback()
            logger.warning("Rolled back atomic block")
            raise
        else:
            await conn.commit()
        finally:
            _in_atomic.reset(token)


def _wrap_error(operation: str, collection: str, error: Exception) -> DatabaseError:
    if isinstance(error, aiosqlite.IntegrityError) and "UNIQUE constraint failed" in str(error):
        return RecordExistsError(f"Duplicate record in {collection}: {error}")
    if isinstance(error, aiosqlite.OperationalError) and "no such table" in str(error):
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    return DatabaseError(f"Failed to {operation} {collection}: {error}")


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id.

    Raises:
        RecordExistsError: If a uniqueness constraint rejects the row
        DatabaseError: For other failures
    """
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        columns = list(data.keys())
        for column in columns:
            _validate_field_name(column)
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        async with _writing(conn):
            cursor = await conn.execute(query, values)
        record_id = cursor.lastrowid
    except Exception as e:
        error = _wrap_error("create record in", collection, e)
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise error from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def upsert_record(
    *,
    collection: str,
    data: dict[str, Any],
    conflict_fields: Iterable[str],
    update_fields: Iterable[str],
) -> dict[str, Any]:
    """Insert a record, or update `update_fields` on the row that conflicts on `conflict_fields`.

    Relies on a UNIQUE constraint over `conflict_fields`, so concurrent callers
    can never produce two rows for the same key.
    """
    conflict = list(conflict_fields)
    updates = list(update_fields)
    try:
        _validate_collection_name(collection)
        for field in [*data.keys(), *conflict, *updates]:
            _validate_field_name(field)
        conn = await get_connection()

        columns = list(data.keys())
        set_clause = ", ".join([*(f"{field} = excluded.{field}" for field in updates), "updated = datetime('now')"])
        query = (
            f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)}) "  # noqa: S608 - collection is validated
            f"ON CONFLICT({', '.join(conflict)}) DO UPDATE SET {set_clause}"
        )
        async with _writing(conn):
            await conn.execute(query, [_to_db_value(data[key]) for key in columns])
    except Exception as e:
        error = _wrap_error("upsert record in", collection, e)
        logger.error("upsert_record_failed", extra={"collection": collection, "error": str(e)})
        raise error from e

    record = await get_first_record(collection=collection, match={field: data[field] for field in conflict})
    if record is None:
        msg = f"Upserted record vanished from {collection}"
        raise DatabaseError(msg)
    logger.info("Upserted record", extra={"collection": collection, "record_id": record["id"]})
    return record


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        columns = [description[0] for description in cursor.description]
        record = dict(zip(columns, row, strict=True))

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _convert_record_ids(record)
    except RecordNotFoundError:
        raise
    except ValueError as e:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg) from e
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error("get record from", collection, e) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        for key in data:
            _validate_field_name(key)
        conn = await get_connection()

        set_clause = ", ".join([*(f"{key} = ?" for key in data), "updated = datetime('now')"])
        values = [_to_db_value(val) for val in data.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        async with _writing(conn):
            cursor = await conn.execute(query, values)

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error("update record in", collection, e) from e

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        async with _writing(conn):
            cursor = await conn.execute(query, (int(record_id),))

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error("delete record from", collection, e) from e


async def delete_records(
    *,
    collection: str,
    filter_query: str = "",
    match: dict[str, Any] | None = None,
) -> int:
    """Delete every record matching the filter and return how many were removed."""
    try:
        _validate_collection_name(collection)
        where_clause, params = _build_where(filter_query, match)
        if not where_clause:
            msg = "Refusing to delete without a filter"
            raise ValueError(msg)
        conn = await get_connection()

        query = f"DELETE FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        async with _writing(conn):
            cursor = await conn.execute(query, params)

        logger.info("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except ValueError:
        raise
    except Exception as e:
        logger.error("delete_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error("delete records from", collection, e) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    match: dict[str, Any] | None = None,
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = _build_where(filter_query, match)
        safe_sort = _safe_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        columns = [description[0] for description in cursor.description]
        records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except ValueError:
        raise
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error("list records from", collection, e) from e


async def get_first_record(
    *,
    collection: str,
    filter_query: str = "",
    match: dict[str, Any] | None = None,
    sort: str = "",
) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(
        collection=collection,
        per_page=1,
        filter_query=filter_query,
        match=match,
        sort=sort,
    )
    return records[0] if records else None


async def count_records(
    *,
    collection: str,
    filter_query: str = "",
    match: dict[str, Any] | None = None,
) -> int:
    """Count records matching the filter."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = _build_where(filter_query, match)
        query = f"SELECT COUNT(*) FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
    except ValueError:
        raise
    except Exception as e:
        logger.error("count_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error("count records in", collection, e) from e
