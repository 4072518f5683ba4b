# Overview: Pytest coverage for the document-number index repair.

"""
Legacy schemas are built with raw SQL on a throwaway SQLite engine so the
repair can be checked without touching the application database.
"""

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from bms.services.maintenance_service import ensure_tenant_number_indexes


TARGET = (("legacy_invoices", "invoice_number", "uq_legacy_invoices_company_number"),)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


def build(engine, *statements):
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))


def unique_indexes(engine, table):
    return {
        ix["name"]: ix["column_names"]
        for ix in inspect(engine).get_indexes(table)
        if ix.get("unique")
    }


class TestEnsureTenantNumberIndexes:
    def test_replaces_global_unique_index(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL)",
            "CREATE UNIQUE INDEX ix_legacy_invoices_number ON legacy_invoices (invoice_number)",
        )

        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)

        assert repair.dropped == ["ix_legacy_invoices_number"]
        assert repair.created == "uq_legacy_invoices_company_number"
        assert repair.unfixable == []
        assert unique_indexes(engine, "legacy_invoices") == {
            "uq_legacy_invoices_company_number": ["company_id", "invoice_number"],
        }

    def test_second_run_is_a_no_op(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL)",
            "CREATE UNIQUE INDEX ix_legacy_invoices_number ON legacy_invoices (invoice_number)",
        )
        ensure_tenant_number_indexes(TARGET, engine=engine)
        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)

        assert not repair.changed
        assert repair.to_dict() == {
            "table": "legacy_invoices", "dropped": [], "created": None, "unfixable": [],
        }

    def test_same_number_allowed_in_two_companies_after_repair(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL)",
            "CREATE UNIQUE INDEX ix_legacy_invoices_number ON legacy_invoices (invoice_number)",
        )
        ensure_tenant_number_indexes(TARGET, engine=engine)

        build(
            engine,
            "INSERT INTO legacy_invoices (company_id, invoice_number) VALUES (1, 'INV-00001')",
            "INSERT INTO legacy_invoices (company_id, invoice_number) VALUES (2, 'INV-00001')",
        )
        with pytest.raises(IntegrityError):
            build(engine, "INSERT INTO legacy_invoices (company_id, invoice_number) VALUES (1, 'INV-00001')")

    def test_inline_unique_constraint_is_reported(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL UNIQUE)",
        )

        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)

        assert repair.unfixable == ["sqlite_autoindex_legacy_invoices_1"]
        assert repair.dropped == []
        assert repair.created == "uq_legacy_invoices_company_number"

        # Still global until the table is rebuilt.
        build(engine, "INSERT INTO legacy_invoices (company_id, invoice_number) VALUES (1, 'INV-00001')")
        with pytest.raises(IntegrityError):
            build(engine, "INSERT INTO legacy_invoices (company_id, invoice_number) VALUES (2, 'INV-00001')")

    def test_named_table_constraint_is_reported(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL, "
            "CONSTRAINT uq_legacy_number UNIQUE (invoice_number))",
        )

        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)

        assert len(repair.unfixable) == 1
        assert repair.unfixable[0].startswith("sqlite_autoindex_legacy_invoices")

    def test_compound_table_constraint_counts_as_present(self, engine):
        build(
            engine,
            "CREATE TABLE legacy_invoices (id INTEGER PRIMARY KEY, company_id INTEGER NOT NULL, "
            "invoice_number VARCHAR(64) NOT NULL, UNIQUE (company_id, invoice_number))",
        )

        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)

        assert not repair.changed
        assert repair.unfixable == []

    def test_missing_table_is_skipped(self, engine):
        [repair] = ensure_tenant_number_indexes(TARGET, engine=engine)
        assert not repair.changed
        assert repair.unfixable == []

    def test_current_schema_needs_nothing(self, app, db_session):
        from bms.extensions import db

        db.session.remove()
        repairs = ensure_tenant_number_indexes()
        assert [r.table for r in repairs] == ["invoices", "sales_receipts"]
        assert not any(r.changed or r.unfixable for r in repairs)
