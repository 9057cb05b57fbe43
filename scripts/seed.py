"""Seed the brands table from brands.yml."""

from __future__ import annotations

from dotenv import load_dotenv
from sqlalchemy import text

from videosync.db.session import create_engine_from_env
from videosync.ingest import load_brands


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    brands = load_brands()
    with engine.begin() as conn:
        for brand in brands:
            conn.execute(
                text(
                    """
                    INSERT INTO brands (id, name, shop_cipher)
                    VALUES (:id, :name, :shop_cipher)
                    ON CONFLICT (id) DO UPDATE SET name = EXCLUDED.name, shop_cipher = EXCLUDED.shop_cipher
                    """
                ),
                {"id": brand.id, "name": brand.name, "shop_cipher": brand.shop_cipher},
            )
    print(f"Seeded {len(brands)} brands")


if __name__ == "__main__":
    main()
