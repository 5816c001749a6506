"""Ordering bounded context: shopping cart and order lifecycle.

Handles the session cart, atomic order creation with stock reservation,
order queries, status updates and cancellation. :class:`OrderingDomain`
builds every shared service once and hands them to whoever needs them.
"""

import structlog

from ordering.cart.management import CartManager
from ordering.cart.session import InMemorySessionStore, SessionStore
from ordering.catalogue.catalog import ProductCatalog
from ordering.config import Settings
from ordering.order.cancellation import OrderCancellation
from ordering.order.creation import OrderCreation
from ordering.order.customers import DatabaseUserDirectory
from ordering.order.queries import OrderQueries, UserDirectory
from ordering.order.status import OrderStatusUpdater
from ordering.order.store import OrderStore
from ordering.utils.db import Database

logger = structlog.get_logger(__name__)


class OrderingDomain:
    def __init__(
        self,
        settings: Settings,
        database: Database | None = None,
        sessions: SessionStore | None = None,
        user_directory: UserDirectory | None = None,
    ):
        self.settings = settings
        self.database = database or Database.from_settings(settings)
        self.catalog = ProductCatalog(self.database)
        self.orders = OrderStore()

        self.carts = CartManager(self.catalog, sessions or InMemorySessionStore())
        self.creation = OrderCreation(self.database, self.catalog, self.orders)
        self.queries = OrderQueries(
            self.database,
            self.orders,
            user_directory=user_directory or DatabaseUserDirectory(self.database),
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
        )
        self.status = OrderStatusUpdater(
            self.database, self.orders, strict_transitions=settings.strict_transitions
        )
        self.cancellation = OrderCancellation(self.database, self.catalog, self.orders)

    @classmethod
    def from_env(cls, **overrides) -> "OrderingDomain":
        return cls(Settings.from_env(**overrides))

    def setup_db(self) -> None:
        """Create the products, users, orders and order_items tables if missing."""
        self.database.create_all()
        logger.info("Database schema ready", dialect=self.database.dialect)

    def shutdown(self) -> None:
        self.database.dispose()
