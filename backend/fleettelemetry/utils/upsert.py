"""Dialect-aware INSERT ... ON CONFLICT helpers (SQLite and PostgreSQL)."""
from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy.orm import Session


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"ON CONFLICT not supported for dialect {dialect!r}")
    return insert


def insert_ignore(db: Session, model, values: dict[str, Any], conflict_cols: Sequence[str]) -> bool:
    """Insert one row, silently skipping it if conflict_cols already exist.

    Returns True when a row was actually written.
    """
    insert = _dialect_insert(db)
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=list(conflict_cols))
    result = db.execute(stmt)
    return result.rowcount == 1


def upsert(db: Session, model, values: dict[str, Any], conflict_cols: Sequence[str]) -> None:
    """Insert one row or overwrite its non-key columns on conflict."""
    insert = _dialect_insert(db)
    stmt = insert(model).values(**values)
    update_cols = {k: stmt.excluded[k] for k in values if k not in conflict_cols}
    stmt = stmt.on_conflict_do_update(index_elements=list(conflict_cols), set_=update_cols)
    db.execute(stmt)
