"""Shared test fixtures: in-memory database, API client and workbook builder."""
import io
import os

# Settings are read at import time; keep the app's own engine off disk
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleettelemetry.api.rate_limit import limiter
from fleettelemetry.database import get_db
from fleettelemetry.main import app
from fleettelemetry.models import Base  # noqa: F401 -- registers all models


def make_xlsx(sheets: dict) -> bytes:
    """Build an XLSX file in memory from {sheet name: [row, ...]}."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def db():
    """In-memory SQLite session with all tables, shareable across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def api_client(db):
    """TestClient with the DB dependency bound to the in-memory session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as client:
        yield client
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def build_xlsx():
    """Factory fixture: build_xlsx({"Sheet": [[header, ...], [cell, ...]]}) -> bytes."""
    return make_xlsx
