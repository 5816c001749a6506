import pytest

from ordering.catalogue.product import Product, ProductStatus
from ordering.config import Settings
from ordering.domain import OrderingDomain

SHIPPING_ADDRESS = {
    "full_name": "Tran Thi B",
    "phone": "0912345678",
    "street": "45 Nguyen Hue",
    "district": "District 1",
    "city": "Ho Chi Minh City",
}


def _product(product_id="prod-001", **overrides) -> Product:
    values = {
        "id": product_id,
        "title": f"Product {product_id}",
        "sku": f"SKU-{product_id}",
        "price_value": 50000.0,
        "stock_quantity": 10,
        "status": ProductStatus.ACTIVE,
        "requires_prescription": False,
        "manufacturer": "Acme Pharma",
        "category": "pain-relief",
        "images": [f"/img/products/{product_id}.jpg"],
    }
    values.update(overrides)
    return Product(**values)


def _order_payload(*items, **overrides) -> dict:
    """A valid checkout payload; ``items`` are ``(product_id, quantity, unit_price)`` tuples."""
    lines = items or (("prod-001", 1, 50000.0),)
    payload = {
        "items": [
            {"product_id": product_id, "quantity": quantity, "unit_price": unit_price}
            for product_id, quantity, unit_price in lines
        ],
        "total_amount": sum(quantity * unit_price for _, quantity, unit_price in lines),
        "shipping_address": dict(SHIPPING_ADDRESS),
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def settings(tmp_path):
    # File-backed so that separate connections (and threads) share one database
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'ordering.db'}",
        transaction_timeout=5.0,
    )


@pytest.fixture()
def ordering(settings):
    domain = OrderingDomain(settings)
    domain.setup_db()
    yield domain
    domain.database.drop_all()
    domain.shutdown()


@pytest.fixture()
def products(ordering):
    catalog = [
        _product("prod-001", title="Paracetamol 500mg", price_value=25000.0, stock_quantity=10),
        _product("prod-002", title="Vitamin C 1000mg", price_value=120000.0, stock_quantity=5),
        _product(
            "prod-003",
            title="Amoxicillin 500mg",
            price_value=80000.0,
            stock_quantity=20,
            requires_prescription=True,
        ),
        _product("prod-004", title="Discontinued Syrup", stock_quantity=8, status=ProductStatus.INACTIVE),
    ]
    ordering.catalog.add_products(catalog)
    return {product.id: product for product in catalog}


@pytest.fixture()
def make_product():
    return _product


@pytest.fixture()
def order_payload():
    return _order_payload


@pytest.fixture()
def stock_of(ordering):
    def _stock(product_id) -> int:
        return ordering.catalog.get(product_id).stock_quantity

    return _stock
