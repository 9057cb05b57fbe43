"""Read-only lookups against the product catalog."""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text


class CatalogStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_product_by_external_id(self, brand_id: int, external_product_id: str) -> int | None:
        with self.engine.connect() as conn:
            product_id = conn.execute(
                text(
                    """
                    SELECT id FROM products
                    WHERE brand_id = :brand_id AND external_product_id = :external_product_id
                    """
                ),
                {"brand_id": brand_id, "external_product_id": external_product_id},
            ).scalar_one_or_none()
        return int(product_id) if product_id is not None else None
