"""Database repository for account data."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from psycopg import errors, sql
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account
from .domain.contracts import NewAccount, StoreConflict

logger = logging.getLogger(__name__)

_COLUMNS = (
    "account_id, first_name, last_name, email, phone, user_name, "
    "password_hash, role, created_at, profile_picture"
)

_MUTABLE_FIELDS = ("first_name", "last_name", "email", "phone", "role", "profile_picture")

_LOOKUP_FIELDS = frozenset({"email", "phone", "user_name"})

_UNIQUE_FIELDS = ("email", "phone")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL CONSTRAINT accounts_email_key UNIQUE,
    phone TEXT NOT NULL CONSTRAINT accounts_phone_key UNIQUE,
    user_name TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'user',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    profile_picture TEXT
)
"""


def _escape_like(fragment: str) -> str:
    """Escape LIKE wildcards so the fragment matches literally."""
    return fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _conflict_field(exc: errors.UniqueViolation) -> str | None:
    """Return the account column named by a unique violation, if any."""
    source = exc.diag.constraint_name or str(exc)
    for field in _UNIQUE_FIELDS:
        if field in source:
            return field
    return None


class AccountRepository:
    """Postgres-backed account persistence with storage-level uniqueness."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the accounts table and its uniqueness constraints if missing."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
                conn.commit()

    def find_by_field(self, field: str, value: str) -> Account | None:
        """Fetch the account whose ``field`` equals ``value`` or return ``None``."""
        if field not in _LOOKUP_FIELDS:
            raise ValueError(f"unsupported lookup field: {field}")
        query = sql.SQL("SELECT {columns} FROM accounts WHERE {field} = %s LIMIT 1").format(
            columns=sql.SQL(_COLUMNS),
            field=sql.Identifier(field),
        )
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, (value,))
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Fetch an account by identity key or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM accounts WHERE account_id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
        return self._map_record(row) if row else None

    def find_all(self) -> list[Account]:
        """Return every stored account ordered by identity key."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM accounts ORDER BY account_id")
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def insert(self, account: NewAccount) -> Account:
        """Persist a new account; the database assigns its identity key.

        Raises
        ------
        StoreConflict
            When the email or phone uniqueness constraint rejects the row.
        """
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (first_name, last_name, email, phone, user_name,
                                              password_hash, role, profile_picture)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account.first_name,
                            account.last_name,
                            account.email,
                            account.phone,
                            account.user_name,
                            account.password_hash,
                            account.role,
                            account.profile_picture,
                        ),
                    )
                    record = cur.fetchone()
                    conn.commit()
        except errors.UniqueViolation as exc:
            field = _conflict_field(exc)
            if field is None:
                raise
            logger.info("unique constraint rejected write on %s", field)
            raise StoreConflict(field) from exc
        return self._map_record(record)

    def merge_and_save(self, existing: Account, partial: dict[str, Any]) -> Account | None:
        """Apply ``partial`` onto ``existing`` and save the whole record.

        Returns ``None`` when the row disappeared before the update ran.
        """
        unknown = set(partial) - set(_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"fields cannot be updated: {', '.join(sorted(unknown))}")
        merged = replace(existing, **partial)
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(field)) for field in _MUTABLE_FIELDS
        )
        query = sql.SQL(
            "UPDATE accounts SET {assignments} WHERE account_id = %s RETURNING {columns}"
        ).format(assignments=assignments, columns=sql.SQL(_COLUMNS))
        params = [getattr(merged, field) for field in _MUTABLE_FIELDS]
        params.append(existing.account_id)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                    conn.commit()
        except errors.UniqueViolation as exc:
            field = _conflict_field(exc)
            if field is None:
                raise
            logger.info("unique constraint rejected write on %s", field)
            raise StoreConflict(field) from exc
        return self._map_record(row) if row else None

    def delete_by_id(self, account_id: int) -> None:
        """Hard-delete the account with the given identity key."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM accounts WHERE account_id = %s", (account_id,))
                conn.commit()

    def search_by_handle_substring(self, fragment: str) -> list[Account]:
        """Return accounts whose display handle contains ``fragment``, ignoring case."""
        pattern = f"%{_escape_like(fragment)}%"
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM accounts WHERE user_name ILIKE %s ESCAPE '\\'",
                    (pattern,),
                )
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            first_name=row[1],
            last_name=row[2],
            email=row[3],
            phone=row[4],
            user_name=row[5],
            password_hash=row[6],
            role=row[7],
            created_at=row[8],
            profile_picture=row[9],
        )
