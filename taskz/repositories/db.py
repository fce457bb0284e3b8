# Rev 0.2.0

"""SQLite connection & migration runner (Rev 0.2.0)
- WAL mode, foreign_keys=ON
- Applies SQL files in taskz/data/migrations in lexical order
- Tracks applied files in schema_migrations(filename TEXT PRIMARY KEY, sha256, applied_at UTC)
- transaction(): one BEGIN IMMEDIATE … COMMIT per mutation, ROLLBACK on any error
"""
from __future__ import annotations
import hashlib
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime, timezone
from typing import Iterator

from taskz.utils.logging_setup import get_logger
from taskz.utils.paths import DB_PATH, MIGRATIONS_DIR


class Database:
    def __init__(self, path: Path | str = DB_PATH) -> None:
        self._log = get_logger("Database")
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.execute("PRAGMA foreign_keys=ON;")
        self.conn.execute("PRAGMA busy_timeout=5000;")
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            "filename TEXT PRIMARY KEY, sha256 TEXT NOT NULL, applied_at TEXT NOT NULL)"
        )
        # guards the shared connection; readers take it too so they never see an open transaction
        self.lock = threading.RLock()
        self._depth = 0
        self._log.info("SQLite open %s", self.path)

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    def applied(self) -> dict[str, str]:
        rows = self.conn.execute("SELECT filename, sha256 FROM schema_migrations").fetchall()
        return {r[0]: r[1] for r in rows}

    def pending(self, migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
        applied = self.applied()
        return [p for p in sorted(Path(migrations_dir).glob("*.sql")) if p.name not in applied]

    def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
        done: list[str] = []
        with self.lock:
            for p in self.pending(migrations_dir):
                sql = p.read_text(encoding="utf-8")
                self.conn.executescript(sql)
                self.conn.execute(
                    "INSERT INTO schema_migrations(filename, sha256, applied_at) VALUES(?, ?, ?)",
                    (p.name, hashlib.sha256(sql.encode("utf-8")).hexdigest(),
                     datetime.now(timezone.utc).isoformat()),
                )
                self._log.info("Applied migration %s", p.name)
                done.append(p.name)
        return done

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All-or-nothing unit of work. Nested calls join the outer transaction."""
        with self.lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self.conn
                finally:
                    self._depth -= 1
                return
            self.conn.execute("BEGIN IMMEDIATE;")
            self._depth = 1
            try:
                yield self.conn
                self.conn.execute("COMMIT;")
            except BaseException:
                self.conn.execute("ROLLBACK;")
                self._log.debug("Transaction rolled back")
                raise
            finally:
                self._depth = 0

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        with self.lock:
            yield self.conn
