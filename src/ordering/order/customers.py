"""Customer contact details for order reads.

The identity service owns ``users``; ordering only reads email, name and
phone for the owners of the orders it returns. The table is declared here
so a standalone deployment gets it from ``setup_db``.
"""

from collections.abc import Iterable

from sqlalchemy import Column, String, Table, select

from ordering.order.order import CustomerSummary
from ordering.utils.db import Database, metadata

users_table = Table(
    "users",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("email", String(255)),
    Column("full_name", String(255)),
    Column("phone", String(32)),
)


class DatabaseUserDirectory:
    """Looks customers up in the shared ``users`` table."""

    def __init__(self, database: Database):
        self._database = database

    def get_customers(self, user_ids: Iterable[str]) -> dict[str, CustomerSummary]:
        ids = sorted({str(user_id) for user_id in user_ids})
        if not ids:
            return {}

        with self._database.connect() as conn:
            rows = conn.execute(select(users_table).where(users_table.c.user_id.in_(ids))).mappings()
            return {
                row["user_id"]: CustomerSummary(email=row["email"], name=row["full_name"], phone=row["phone"])
                for row in rows
            }
