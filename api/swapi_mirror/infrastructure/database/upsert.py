"""
Primitiva "insert o ignorar en conflicto" independiente del motor.

- PostgreSQL / SQLite: INSERT ... ON CONFLICT DO NOTHING
- MySQL / MariaDB: INSERT IGNORE
- Otros dialectos: se leen las filas existentes y se insertan solo las faltantes
"""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import Table, and_, insert, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def _dedupe(rows: Sequence[dict[str, Any]], key_columns: Sequence[str]) -> list[dict[str, Any]]:
    seen: set[tuple] = set()
    unique_rows: list[dict[str, Any]] = []
    for row in rows:
        key = tuple(row[c] for c in key_columns)
        if key in seen:
            continue
        seen.add(key)
        unique_rows.append(row)
    return unique_rows


async def insert_ignoring_duplicates(
    db: AsyncSession,
    table: Table,
    rows: Sequence[dict[str, Any]],
) -> int:
    """
    Inserta filas en `table` ignorando las que violan su clave primaria.

    Returns:
        Cantidad de filas efectivamente insertadas (las duplicadas no cuentan).
        Si el driver no informa rowcount, la cantidad enviada tras deduplicar.
    """
    key_columns = [c.name for c in table.primary_key.columns]
    unique_rows = _dedupe(rows, key_columns)
    if not unique_rows:
        return 0

    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(unique_rows).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(unique_rows).on_conflict_do_nothing()
    elif dialect in ("mysql", "mariadb"):
        stmt = insert(table).values(unique_rows).prefix_with("IGNORE")
    else:
        unique_rows = await _without_existing(db, table, unique_rows, key_columns)
        if not unique_rows:
            return 0
        stmt = insert(table).values(unique_rows)

    result = await db.execute(stmt)
    if result.rowcount is not None and result.rowcount >= 0:
        return result.rowcount
    return len(unique_rows)


async def _without_existing(
    db: AsyncSession,
    table: Table,
    rows: list[dict[str, Any]],
    key_columns: Sequence[str],
) -> list[dict[str, Any]]:
    conditions = [
        and_(*[table.c[col] == row[col] for col in key_columns])
        for row in rows
    ]
    result = await db.execute(
        select(*[table.c[col] for col in key_columns]).where(or_(*conditions))
    )
    existing = {tuple(r) for r in result.all()}
    return [r for r in rows if tuple(r[c] for c in key_columns) not in existing]
