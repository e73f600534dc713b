"""Database repository for account data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from psycopg import errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, AccountType
from .domain.contracts import NewAccountRecord


class DuplicateEmailError(Exception):
    """Raised when the unique email index rejects an insert."""


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    first_name VARCHAR(100) NOT NULL,
    last_name VARCHAR(100) NOT NULL,
    email VARCHAR(255) NOT NULL,
    password_hash VARCHAR(255) NOT NULL,
    account_type VARCHAR(50) NOT NULL
        CHECK (account_type IN ('individual', 'organization', 'intermediary')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_lower_idx ON accounts (lower(email));
"""

_COLUMNS = "id, first_name, last_name, email, password_hash, account_type, created_at, updated_at"


class AccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the accounts table and its indexes when they do not exist yet."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def email_exists(self, email: str) -> bool:
        """Return ``True`` if an account already uses ``email`` (case-insensitive)."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT 1 FROM accounts WHERE lower(email) = lower(%s)", (email,))
                return cur.fetchone() is not None

    def create_account(self, record: NewAccountRecord) -> Account:
        """Insert a new account row and return it as a domain aggregate."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (id, first_name, last_name, email, password_hash,
                                              account_type, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account_id,
                            record.first_name,
                            record.last_name,
                            record.email,
                            record.password_hash,
                            record.account_type,
                            now,
                            now,
                        ),
                    )
                except errors.UniqueViolation as exc:
                    conn.rollback()
                    raise DuplicateEmailError(record.email) from exc
                row = cur.fetchone()
            conn.commit()
        return self._map_record(row)

    def get_account(self, account_id: str) -> Account | None:
        """Fetch an account by identifier or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE id = %s", (account_id,))
                row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    def find_by_email(self, email: str) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM accounts WHERE lower(email) = lower(%s)",
                    (email,),
                )
                row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            first_name=row[1],
            last_name=row[2],
            email=row[3],
            password_hash=row[4],
            account_type=AccountType(row[5]),
            created_at=row[6],
            updated_at=row[7],
        )
