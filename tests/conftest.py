# Rev 0.2.0

"""Pytest fixtures for taskZ (Rev 0.2.0)"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication

from taskz.app_context import AppContext
from taskz.repositories.db import Database
from taskz.utils.config import default_settings

T0 = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)


class StepClock:
    """Advances `step` on every call; step=0 freezes time."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current


@pytest.fixture(scope="session", autouse=True)
def qt_core_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture()
def db(tmp_path: Path):
    database = Database(path=tmp_path / "test.db")
    try:
        database.run_migrations()
        yield database
    finally:
        database.close()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def ctx(tmp_path: Path, clock: StepClock):
    context = AppContext.create(tmp_path / "tracker.db", settings=default_settings(), clock=clock)
    try:
        yield context
    finally:
        context.close()


@pytest.fixture()
def service(ctx):
    return ctx.task_service


@pytest.fixture()
def make_task(service):
    def _make(title: str = "Write report", **kw) -> int:
        kw.setdefault("editor", "alice")
        kw.setdefault("origin_surface", "detail_view")
        return service.create_task(title, **kw)
    return _make
