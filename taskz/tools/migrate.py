# File: taskz/tools/migrate.py
# Usage examples:
#   python -m taskz.tools.migrate up
#   python -m taskz.tools.migrate status
#   python -m taskz.tools.migrate verify --db /path/to/taskz.db
#
# Notes:
# - DB path defaults to env TASKZ_DB or the XDG data dir
# - Applies taskz/data/migrations/*.sql in lexicographic order
# - Records applied migrations (name + sha256) in schema_migrations

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Optional

from taskz.repositories.db import Database
from taskz.utils.logging_setup import setup_logging
from taskz.utils.paths import DB_PATH, MIGRATIONS_DIR

REQUIRED_TABLES = [
    "tasks",
    "subtasks",
    "task_tags",
    "task_collaborators",
    "task_activity",
    "schema_migrations",
]

EXPECTED_TRIGGERS = [
    "trg_task_activity_no_update",
    "trg_task_activity_no_delete",
]


def cmd_status(db_path: Path, migrations_dir: Path) -> int:
    db = Database(db_path)
    try:
        applied = db.applied()
        print(f"DB: {db_path}")
        print(f"Migrations dir: {migrations_dir}")
        print(f"Applied count: {len(applied)}")
        for path in sorted(Path(migrations_dir).glob("*.sql")):
            if path.name not in applied:
                continue
            digest = hashlib.sha256(path.read_text(encoding="utf-8").encode("utf-8")).hexdigest()
            flag = "✔" if digest == applied[path.name] else "⚠ changed since applied"
            print(f"  {flag} {path.name}")
        pending = [p.name for p in db.pending(migrations_dir)]
        print(f"Pending count: {len(pending)}")
        for name in pending:
            print(f"  ⧗ {name}")
        return 0
    finally:
        db.close()


def cmd_up(db_path: Path, migrations_dir: Path) -> int:
    db = Database(db_path)
    try:
        done = db.run_migrations(migrations_dir)
        if done:
            print("✓ Database is up to date.")
        else:
            print("✓ No changes. Database already up to date.")
        return 0
    finally:
        db.close()


def cmd_verify(db_path: Path) -> int:
    db = Database(db_path)
    try:
        names = {r[0] for r in db.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%';"
        ).fetchall()}
        missing = [t for t in REQUIRED_TABLES if t not in names]
        if missing:
            print("❌ Missing tables:", ", ".join(missing))
            return 2

        trig = {r[0] for r in db.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='trigger';"
        ).fetchall()}
        trig_missing = [t for t in EXPECTED_TRIGGERS if t not in trig]
        if trig_missing:
            print("❌ Missing triggers:", ", ".join(trig_missing))
            return 3

        print("✓ Verification passed.")
        return 0
    finally:
        db.close()


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="taskz-migrate", description="SQLite migration runner for taskZ")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(sp: argparse.ArgumentParser):
        sp.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")
        sp.add_argument("--migrations-dir", type=Path, default=MIGRATIONS_DIR,
                        help=f"Migrations directory (default: {MIGRATIONS_DIR})")

    add_common(sub.add_parser("up", help="Run pending migrations"))
    add_common(sub.add_parser("status", help="Show applied and pending migrations"))
    add_common(sub.add_parser("verify", help="Check tables and triggers exist"))
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging()
    if args.cmd == "up":
        return cmd_up(args.db, args.migrations_dir)
    if args.cmd == "status":
        return cmd_status(args.db, args.migrations_dir)
    return cmd_verify(args.db)


if __name__ == "__main__":
    raise SystemExit(main())
