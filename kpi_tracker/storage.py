"""
Storage collaborator — a small row interface over the SQLAlchemy session.

Components that need hand-written SQL (dashboard roll-ups, value upserts)
depend on ``Storage`` rather than on a particular database:

    storage.get(query, params)   -> dict | None
    storage.all(query, params)   -> list[dict]
    storage.run(query, params)   -> affected row count
    storage.upsert(table, values, conflict_columns, update_columns)

Queries use ``?`` positional placeholders; they are rewritten to named binds
before execution so one query text serves both backends. The concrete class
is chosen once at startup from the engine dialect (``init_storage``) and kept
in ``app.extensions``; services receive it as an argument or through
``get_storage()``.

Statements run on the caller's session and are committed by the service that
owns the transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

import sqlalchemy as sa
from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "kpi_storage"


def translate_placeholders(query: str) -> tuple[str, int]:
    """Rewrite ``?`` placeholders outside string literals to ``:p0, :p1, ...``.

    Returns the rewritten query and the number of placeholders found.
    """
    out = []
    index = 0
    in_literal = False
    for ch in query:
        if ch == "'":
            in_literal = not in_literal
        if ch == "?" and not in_literal:
            out.append(f":p{index}")
            index += 1
        else:
            out.append(ch)
    return "".join(out), index


class Storage:
    """Backend-neutral row access. Subclasses supply the upsert dialect."""

    dialect_name = ""

    def __init__(self, session):
        self._session = session

    # ── Raw SQL ──────────────────────────────────────────────────────────

    def _execute(self, query: str, params: Sequence[Any] = ()):
        sql, expected = translate_placeholders(query)
        params = tuple(params or ())
        if expected != len(params):
            raise ValueError(
                f"Query expects {expected} parameters, got {len(params)}"
            )
        binds = {f"p{i}": value for i, value in enumerate(params)}
        return self._session.execute(sa.text(sql), binds)

    def get(self, query: str, params: Sequence[Any] = ()) -> dict | None:
        row = self._execute(query, params).mappings().first()
        return dict(row) if row is not None else None

    def all(self, query: str, params: Sequence[Any] = ()) -> list[dict]:
        return [dict(row) for row in self._execute(query, params).mappings().all()]

    def run(self, query: str, params: Sequence[Any] = ()) -> int:
        return self._execute(query, params).rowcount

    # ── Upsert ───────────────────────────────────────────────────────────

    def _insert(self, table: sa.Table):
        raise NotImplementedError

    def upsert(
        self,
        table: sa.Table,
        values: dict,
        conflict_columns: Iterable[str],
        update_columns: Iterable[str],
    ) -> None:
        """Insert ``values`` or update ``update_columns`` of the row sharing
        the ``conflict_columns`` key.

        NULL never conflicts in a unique index, so keys holding a NULL
        (annual targets) go through an update-then-insert path instead.
        """
        conflict_columns = list(conflict_columns)
        update_columns = list(update_columns)

        if any(values.get(col) is None for col in conflict_columns):
            self._upsert_null_key(table, values, conflict_columns, update_columns)
            return

        stmt = self._insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_={col: getattr(stmt.excluded, col) for col in update_columns},
        )
        self._session.execute(stmt)

    def _upsert_null_key(self, table, values, conflict_columns, update_columns):
        conditions = []
        for col in conflict_columns:
            value = values.get(col)
            column = table.c[col]
            conditions.append(column.is_(None) if value is None else column == value)

        result = self._session.execute(
            sa.update(table)
            .where(sa.and_(*conditions))
            .values({col: values[col] for col in update_columns})
        )
        if result.rowcount == 0:
            self._session.execute(sa.insert(table).values(**values))


class SQLiteStorage(Storage):
    dialect_name = "sqlite"

    def _insert(self, table):
        from sqlalchemy.dialects.sqlite import insert as _sqlite_insert

        return _sqlite_insert(table)


class PostgresStorage(Storage):
    dialect_name = "postgresql"

    def _insert(self, table):
        from sqlalchemy.dialects.postgresql import insert as _pg_insert

        return _pg_insert(table)


_BACKENDS = {
    "sqlite": SQLiteStorage,
    "postgresql": PostgresStorage,
}


def build_storage(session, dialect_name: str) -> Storage:
    """Return the storage implementation for a SQLAlchemy dialect name."""
    try:
        backend = _BACKENDS[dialect_name]
    except KeyError:
        raise RuntimeError(f"Unsupported database dialect: {dialect_name}") from None
    return backend(session)


def init_storage(app, db) -> Storage:
    """Select the storage backend once, from the configured engine."""
    with app.app_context():
        dialect_name = db.engine.dialect.name
    storage = build_storage(db.session, dialect_name)
    app.extensions[EXTENSION_KEY] = storage
    app.logger.info("Storage backend: %s", dialect_name)
    return storage


def get_storage() -> Storage:
    """Return the storage handle registered on the current app."""
    return current_app.extensions[EXTENSION_KEY]
