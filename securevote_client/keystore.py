"""
Device Key Store

Uses SQLite to hold the device's voter identity: the national ID, the
signing secret and the secret's kind tag. The kind is stored next to the
secret so it is decided once at registration, never re-sniffed on load.

It also exposes a small opaque key-value table for other device settings.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .errors import IdentityNotFoundError
from .signatures import SigningSecret


@dataclass(frozen=True)
class VoterIdentity:
    national_id: str
    secret: SigningSecret


class KeyStore:
    def __init__(self, path):
        self.path = Path(path)
        # Thread-local connection cache
        self._local = threading.local()

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn = conn
        return conn

    @contextmanager
    def _db(self):
        conn = self._connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init(self) -> "KeyStore":
        """Create tables if they do not exist."""
        with self._db() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS identity (
                    id            INTEGER PRIMARY KEY CHECK (id = 1),
                    national_id   TEXT NOT NULL,
                    secret        TEXT NOT NULL,
                    secret_kind   TEXT NOT NULL,
                    registered_at TEXT NOT NULL DEFAULT (datetime('now'))
                );

                CREATE TABLE IF NOT EXISTS items (
                    name  TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """)
        return self

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    # -----------------------------------------------------------------------
    # Identity
    # -----------------------------------------------------------------------

    def save_identity(self, identity: VoterIdentity):
        """Store the device identity. Only one identity may exist per device."""
        with self._db() as conn:
            conn.execute(
                "INSERT INTO identity (id, national_id, secret, secret_kind) "
                "VALUES (1, ?, ?, ?)",
                (identity.national_id, identity.secret.encoded(), identity.secret.kind),
            )

    def has_identity(self) -> bool:
        with self._db() as conn:
            row = conn.execute("SELECT 1 FROM identity WHERE id = 1").fetchone()
            return row is not None

    def load_identity(self) -> VoterIdentity:
        with self._db() as conn:
            row = conn.execute(
                "SELECT national_id, secret, secret_kind FROM identity WHERE id = 1"
            ).fetchone()
        if row is None:
            raise IdentityNotFoundError("No voter identity on this device; register first")
        secret = SigningSecret.from_stored(row["secret_kind"], row["secret"])
        return VoterIdentity(national_id=row["national_id"], secret=secret)

    def identity_status(self) -> dict:
        """Registration status without exposing the secret."""
        with self._db() as conn:
            row = conn.execute(
                "SELECT national_id, secret_kind, registered_at FROM identity WHERE id = 1"
            ).fetchone()
        if row is None:
            return {"registered": False}
        return {
            "registered": True,
            "national_id": row["national_id"],
            "secret_kind": row["secret_kind"],
            "registered_at": row["registered_at"],
        }

    def delete_identity(self) -> bool:
        """Destroy the identity (device delink). Returns True if one existed."""
        with self._db() as conn:
            cursor = conn.execute("DELETE FROM identity WHERE id = 1")
            return cursor.rowcount > 0

    # -----------------------------------------------------------------------
    # Opaque items
    # -----------------------------------------------------------------------

    def set_item(self, name: str, value: str):
        with self._db() as conn:
            conn.execute(
                """INSERT INTO items (name, value) VALUES (?, ?)
                   ON CONFLICT(name) DO UPDATE SET value=excluded.value""",
                (name, value),
            )

    def get_item(self, name: str):
        with self._db() as conn:
            row = conn.execute("SELECT value FROM items WHERE name = ?", (name,)).fetchone()
            return row["value"] if row is not None else None

    def delete_item(self, name: str):
        with self._db() as conn:
            conn.execute("DELETE FROM items WHERE name = ?", (name,))
