"""Transaction scoping on SQLite: writers take the lock at BEGIN, readers do not."""

from sqlalchemy import event


def _record_statements(database):
    statements = []

    @event.listens_for(database.engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    return statements


class TestSqliteBegin:
    def test_transactions_begin_immediate(self, ordering, products):
        statements = _record_statements(ordering.database)

        with ordering.database.transaction("reserve") as tx:
            ordering.catalog.reserve_stock(tx.connection, "prod-001", 1)

        assert statements[0] == "BEGIN IMMEDIATE"

    def test_reads_use_a_deferred_begin(self, ordering, products):
        statements = _record_statements(ordering.database)

        ordering.catalog.get("prod-001")

        assert "BEGIN IMMEDIATE" not in statements
        assert statements[0] == "BEGIN"

    def test_reads_do_not_wait_for_an_open_write(self, ordering, products):
        with ordering.database.transaction("reserve") as tx:
            assert ordering.catalog.reserve_stock(tx.connection, "prod-001", 4)

            # Uncommitted: a separate read connection still sees the old stock
            assert ordering.catalog.get("prod-001").stock_quantity == 10

        assert ordering.catalog.get("prod-001").stock_quantity == 6
