"""ProductCatalog: the engine's window onto products and their stock.

Reads may run on their own connection or join a caller's transaction.
Stock changes always join the caller's transaction so that an order and
its stock effect commit or roll back together.
"""

from collections.abc import Iterable

import structlog
from sqlalchemy import Connection, insert, select, update

from ordering.catalogue.product import Product, ProductStatus, products_table
from ordering.utils.db import Database

logger = structlog.get_logger(__name__)


class ProductCatalog:
    def __init__(self, database: Database):
        self._database = database

    def get(
        self,
        product_id: str,
        *,
        connection: Connection | None = None,
        active_only: bool = False,
    ) -> Product | None:
        query = select(products_table).where(products_table.c.id == str(product_id))
        if active_only:
            query = query.where(products_table.c.status == ProductStatus.ACTIVE.value)

        if connection is not None:
            row = connection.execute(query).mappings().first()
        else:
            with self._database.connect() as conn:
                row = conn.execute(query).mappings().first()
        return Product.model_validate(dict(row)) if row else None

    def get_many(self, product_ids: Iterable[str], *, connection: Connection | None = None) -> dict[str, Product]:
        """Fetch several products in one query, keyed by id. Missing ids are absent."""
        ids = sorted({str(pid) for pid in product_ids})
        if not ids:
            return {}

        query = select(products_table).where(products_table.c.id.in_(ids))
        if connection is not None:
            rows = connection.execute(query).mappings().all()
        else:
            with self._database.connect() as conn:
                rows = conn.execute(query).mappings().all()
        return {row["id"]: Product.model_validate(dict(row)) for row in rows}

    def reserve_stock(self, connection: Connection, product_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units out of stock.

        Check and decrement are one statement, so two concurrent orders can
        never both pass the check. Returns False when stock was insufficient
        at the moment of the update (no row matched).
        """
        result = connection.execute(
            update(products_table)
            .where(products_table.c.id == str(product_id))
            .where(products_table.c.stock_quantity >= quantity)
            .values(stock_quantity=products_table.c.stock_quantity - quantity)
        )
        return result.rowcount == 1

    def release_stock(self, connection: Connection, product_id: str, quantity: int) -> None:
        """Put ``quantity`` units back; the exact inverse of :meth:`reserve_stock`."""
        result = connection.execute(
            update(products_table)
            .where(products_table.c.id == str(product_id))
            .values(stock_quantity=products_table.c.stock_quantity + quantity)
        )
        if result.rowcount == 0:
            # Products are never deleted while orders reference them
            logger.warning("Stock release matched no product", product_id=str(product_id), quantity=quantity)

    def add_products(self, products: Iterable[Product]) -> None:
        """Load products into the catalog table (seeding and tests)."""
        rows = [product.model_dump(mode="json") for product in products]
        if not rows:
            return
        with self._database.transaction("seed products") as tx:
            tx.connection.execute(insert(products_table), rows)
