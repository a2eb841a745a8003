#!/usr/bin/env python
"""
Seed script for creating the catalog tables, demo catalog entries and the
default pricing config.
Run with: cd backend; python scripts/seed_catalog.py
Requires DATABASE_URL in .env.
"""

import os
import sys

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from catalog_sync.config import settings
from catalog_sync.database import Base, SessionLocal, engine
from catalog_sync.models import CatalogEntry
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.services.pricing_config import CURRENCY_RATE_KEY, PRICE_MARKUP_KEY, calculate_retail_price

DEMO_ENTRIES = [
    {
        'name': 'Plush Bear Blanket',
        'product_id': '1A2B3C4D-0001',
        'variant_id': None,  # Resolved on the first inventory sync
        'cost_price': 8.50,
    },
    {
        'name': 'Knitted Baby Booties',
        'product_id': '1A2B3C4D-0002',
        'variant_id': '1A2B3C4D-0002-V1',
        'cost_price': 3.20,
    },
    {
        'name': 'Muslin Swaddle Set',
        'product_id': '1A2B3C4D-0003',
        'variant_id': '1A2B3C4D-0003-V1',
        'cost_price': 12.75,
    },
]


def seed_catalog():
    Base.metadata.create_all(bind=engine)
    print("Tables created (or already present).")

    db = SessionLocal()
    store = CatalogStore(db)
    try:
        if store.get_config_value(CURRENCY_RATE_KEY) is None:
            store.set_config_value(CURRENCY_RATE_KEY, str(settings.currency_rate), commit=False)
            print(f"Set {CURRENCY_RATE_KEY} = {settings.currency_rate}")
        if store.get_config_value(PRICE_MARKUP_KEY) is None:
            store.set_config_value(PRICE_MARKUP_KEY, str(settings.price_markup), commit=False)
            print(f"Set {PRICE_MARKUP_KEY} = {settings.price_markup}")

        if db.query(CatalogEntry).count() > 0:
            print("Catalog entries already exist. Skipping demo entries.")
        else:
            for item in DEMO_ENTRIES:
                db.add(CatalogEntry(
                    name=item['name'],
                    product_id=item['product_id'],
                    variant_id=item['variant_id'],
                    cost_price=item['cost_price'],
                    retail_price=calculate_retail_price(item['cost_price'], settings.currency_rate, settings.price_markup),
                    is_active=True,
                    stock_quantity=0,
                ))
                print(f"Created demo catalog entry: {item['name']}")

        db.commit()
        print("\nCatalog seeded successfully!")
        print("Next steps:")
        print("1. Set SUPPLIER_EMAIL and SUPPLIER_API_KEY in .env")
        print("2. Start the service and check GET /api/v1/supplier/status")
        print("3. Trigger POST /api/v1/sync/inventory/run to test")

    except Exception as e:
        db.rollback()
        print(f"Error seeding catalog: {e}")
        raise
    finally:
        db.close()

if __name__ == '__main__':
    seed_catalog()
