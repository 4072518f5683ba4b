# Overview: Schema maintenance; repairs legacy document-number indexes.

"""
Maintenance Service

Older databases carried a single-column unique index on the document number
columns, which made "INV-00001" unique across every company instead of
within one. ensure_tenant_number_indexes() reflects the live schema, drops
such indexes and makes sure the compound (company_id, number) unique index
exists.

Single-column UNIQUE constraints declared inline in a SQLite table cannot be
dropped without rebuilding the table; those are reported as unfixable and
left for a migration.

Safe to run repeatedly: a second run finds nothing to do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import Index, MetaData, Table, inspect, text
from sqlalchemy.schema import DropConstraint, UniqueConstraint

from ..extensions import db


logger = logging.getLogger(__name__)


# (table, number column, compound index name)
NUMBER_INDEX_TARGETS = (
    ("invoices", "invoice_number", "uq_invoices_company_number"),
    ("sales_receipts", "sales_receipt_number", "uq_sales_receipts_company_number"),
)


@dataclass
class IndexRepair:
    table: str
    dropped: list[str] = field(default_factory=list)
    created: str | None = None
    unfixable: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.dropped or self.created)

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "dropped": list(self.dropped),
            "created": self.created,
            "unfixable": list(self.unfixable),
        }


def _is_compound(columns, number_column: str) -> bool:
    return set(columns or ()) == {"company_id", number_column}


def _sqlite_unique_constraints(conn, table_name: str) -> list[dict]:
    """
    UNIQUE constraints declared in a SQLite CREATE TABLE.

    The inspector misses single-column ones, so read the automatic indexes
    (origin "u") that back them straight from PRAGMA index_list.
    """
    constraints = []
    for row in conn.execute(text(f'PRAGMA index_list("{table_name}")')).mappings().all():
        if not row["unique"] or row["origin"] != "u":
            continue
        info = conn.execute(text(f'PRAGMA index_info("{row["name"]}")')).mappings().all()
        columns = [col["name"] for col in sorted(info, key=lambda col: col["seqno"])]
        constraints.append({"name": row["name"], "column_names": columns})
    return constraints


def _repair_table(conn, table_name: str, number_column: str, index_name: str) -> IndexRepair:
    repair = IndexRepair(table=table_name)
    inspector = inspect(conn)
    if not inspector.has_table(table_name):
        logger.info("Table %s does not exist; skipping", table_name)
        return repair

    table = Table(table_name, MetaData(), autoload_with=conn)
    indexes = inspector.get_indexes(table_name)
    if conn.dialect.name == "sqlite":
        constraints = _sqlite_unique_constraints(conn, table_name)
    else:
        constraints = inspector.get_unique_constraints(table_name)

    has_compound = any(_is_compound(ix["column_names"], number_column) for ix in indexes if ix.get("unique"))
    has_compound = has_compound or any(_is_compound(uc["column_names"], number_column) for uc in constraints)

    # Postgres reports a unique constraint as an index too; drop it as a constraint.
    constraint_names = {uc["name"] for uc in constraints if uc.get("name")}

    for ix in indexes:
        if not ix.get("unique") or ix["column_names"] != [number_column]:
            continue
        name = ix["name"]
        if name in constraint_names or ix.get("duplicates_constraint"):
            continue
        reflected = next(i for i in table.indexes if i.name == name)
        reflected.drop(bind=conn)
        repair.dropped.append(name)
        logger.warning("Dropped single-column unique index %s on %s.%s", name, table_name, number_column)

    for uc in constraints:
        if uc["column_names"] != [number_column]:
            continue
        name = uc.get("name")
        if not name or conn.dialect.name == "sqlite":
            repair.unfixable.append(name or f"{table_name}({number_column})")
            logger.error(
                "Single-column UNIQUE constraint on %s.%s needs a table rebuild migration",
                table_name, number_column,
            )
            continue
        conn.execute(DropConstraint(UniqueConstraint(table.c[number_column], name=name)))
        repair.dropped.append(name)
        logger.warning("Dropped single-column unique constraint %s on %s.%s", name, table_name, number_column)

    if not has_compound:
        Index(index_name, table.c.company_id, table.c[number_column], unique=True).create(bind=conn)
        repair.created = index_name
        logger.warning("Created compound unique index %s on %s", index_name, table_name)

    return repair


def ensure_tenant_number_indexes(targets=NUMBER_INDEX_TARGETS, engine=None) -> list[IndexRepair]:
    """
    Repair document-number uniqueness on every target table in one transaction.

    Returns one IndexRepair per table describing what changed.
    """
    engine = engine or db.engine
    with engine.begin() as conn:
        return [_repair_table(conn, table, column, index) for table, column, index in targets]
