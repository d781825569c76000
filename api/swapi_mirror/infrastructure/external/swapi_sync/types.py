"""
Tipos puros del pipeline SWAPI -> base de datos local.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


RawRecord = dict[str, Any]


@dataclass
class EntityImportStats:
    """
    Contadores de un tipo de entidad en una corrida.

    Fase base: fetched, created, skipped, reconciled.
    Fase de relaciones: join_rows, foreign_keys_set, unresolved, missing_owners.
    """

    entity_type: str
    fetched: int = 0
    created: int = 0
    skipped: int = 0
    reconciled: int = 0
    join_rows: int = 0
    foreign_keys_set: int = 0
    unresolved: int = 0
    missing_owners: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def summary(self) -> str:
        counters = ", ".join(
            f"{name}={value}"
            for name, value in self.as_dict().items()
            if name != "entity_type" and value
        )
        return f"{self.entity_type}: {counters or 'sin cambios'}"
