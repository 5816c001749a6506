"""Product as the ordering engine sees it.

The catalogue owns products; ordering reads them and adjusts only
``stock_quantity``. The table is declared here so the engine can reserve and
release stock in the same transaction that writes orders.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, Boolean, CheckConstraint, Column, Integer, Numeric, String, Table

from ordering.utils.db import metadata

PLACEHOLDER_IMAGE = "/img/products/placeholder-product.jpg"


def main_image(images: list[str] | None, main_image_index: int | None = 0) -> str:
    if not images:
        return PLACEHOLDER_IMAGE
    index = main_image_index if main_image_index is not None and 0 <= main_image_index < len(images) else 0
    return images[index]


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


products_table = Table(
    "products",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("sku", String(100)),
    Column("price_value", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("stock_quantity", Integer, nullable=False, default=0),
    Column("status", String(20), nullable=False, default=ProductStatus.ACTIVE.value),
    Column("requires_prescription", Boolean, nullable=False, default=False),
    Column("manufacturer", String(255)),
    Column("category", String(100)),
    Column("images", JSON, nullable=False, default=list),
    Column("main_image_index", Integer, nullable=False, default=0),
    CheckConstraint("stock_quantity >= 0", name="chk_products_stock_quantity"),
    CheckConstraint("price_value >= 0", name="chk_products_price_value"),
)


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    sku: str | None = None
    price_value: float = Field(ge=0)
    stock_quantity: int = Field(ge=0)
    status: ProductStatus = ProductStatus.ACTIVE
    requires_prescription: bool = False
    manufacturer: str | None = None
    category: str | None = None
    images: list[str] = Field(default_factory=list)
    main_image_index: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    @property
    def image(self) -> str:
        """The main product image, or the storefront placeholder."""
        return main_image(self.images, self.main_image_index)
