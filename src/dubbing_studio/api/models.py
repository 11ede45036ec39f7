from __future__ import annotations

import sqlite3
import time
from collections.abc import Iterator
from contextlib import closing, contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dubbing_studio.utils.locks import file_lock

_USER_COLUMNS = ("id", "username", "password_hash", "role", "created_at")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
  id TEXT PRIMARY KEY,
  username TEXT UNIQUE NOT NULL,
  password_hash TEXT NOT NULL,
  role TEXT NOT NULL,
  created_at INTEGER NOT NULL
)
"""


def now_ts() -> int:
    return int(time.time())


class Role(str, Enum):
    admin = "admin"
    user = "user"


@dataclass(frozen=True, slots=True)
class User:
    id: str
    username: str
    password_hash: str
    role: Role
    created_at: int

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> User:
        return cls(
            id=str(row["id"]),
            username=str(row["username"]),
            password_hash=str(row["password_hash"]),
            role=Role(str(row["role"])),
            created_at=int(row["created_at"]),
        )


class AuthStore:
    """
    Accounts for the web UI and API, one row per user in `auth.db`.

    Reads go straight to SQLite; writes also take a sidecar file lock so the
    CLI (`users add`) and a running server can share the database.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.db_path.with_name(self.db_path.name + ".lock")
        with self._writing() as con:
            con.execute(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(str(self.db_path))) as con:
            con.row_factory = sqlite3.Row
            yield con

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Connection]:
        with file_lock(self._lock_path), self._connect() as con:
            yield con
            con.commit()

    def _find(self, column: str, value: str) -> User | None:
        if column not in _USER_COLUMNS:
            raise ValueError(f"unknown column: {column}")
        with self._connect() as con:
            row = con.execute(f"SELECT * FROM users WHERE {column} = ?", (value,)).fetchone()
        return User.from_row(row) if row is not None else None

    def get_user(self, user_id: str) -> User | None:
        return self._find("id", user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return self._find("username", username)

    def list_users(self) -> list[User]:
        with self._connect() as con:
            rows = con.execute("SELECT * FROM users ORDER BY created_at, username").fetchall()
        return [User.from_row(r) for r in rows]

    def upsert_user(self, user: User) -> None:
        # An existing username keeps its id and created_at; only credentials change.
        with self._writing() as con:
            con.execute(
                "INSERT INTO users (id, username, password_hash, role, created_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(username) DO UPDATE SET "
                "password_hash = excluded.password_hash, role = excluded.role",
                (user.id, user.username, user.password_hash, user.role.value, int(user.created_at)),
            )
