"""Atomic sequential ID generation for stored records.

Uses the ``id_counters`` table; minimum 4 digits, grows naturally past
9999. The caller owns the transaction, so the counter increment commits
or rolls back together with the record it names.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import insert, select, update

from coachctl.infrastructure.database.schema import id_counters

if TYPE_CHECKING:
    from sqlalchemy import Connection

SEQUENTIAL_PREFIXES: tuple[str, ...] = ("TASK-", "NOTE-", "INT-", "WANT-", "STEP-", "ITER-")


def seed_counters(conn: Connection) -> None:
    """Insert a counter row for every known prefix that lacks one."""
    for prefix in SEQUENTIAL_PREFIXES:
        row = conn.execute(
            select(id_counters.c.type_prefix).where(id_counters.c.type_prefix == prefix)
        ).first()
        if row is None:
            conn.execute(insert(id_counters).values(type_prefix=prefix, next_value=1))


def next_sequential_id(conn: Connection, type_prefix: str) -> str:
    """Claim the next ID for *type_prefix* (e.g. ``"WANT-0007"``).

    Raises:
        ValueError: If *type_prefix* is not a known sequential prefix.
    """
    if type_prefix not in SEQUENTIAL_PREFIXES:
        msg = (
            f"Unknown sequential type prefix: {type_prefix!r}. "
            f"Expected one of {list(SEQUENTIAL_PREFIXES)}"
        )
        raise ValueError(msg)

    row = conn.execute(
        select(id_counters.c.next_value).where(id_counters.c.type_prefix == type_prefix)
    ).one()
    current_value: int = row.next_value

    conn.execute(
        update(id_counters)
        .where(id_counters.c.type_prefix == type_prefix)
        .values(next_value=current_value + 1)
    )
    return f"{type_prefix}{current_value:04d}"
