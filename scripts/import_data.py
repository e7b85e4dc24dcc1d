"""Import products from an .xlsx file.

Rows with a SKU that already exists update that product; everything else is
created. Writes go through ProductService, but with a short-lived cache of
this process. The cache of a running app is not invalidated, so it keeps
serving the old snapshots until they expire (CACHE_DEFAULT_TTL_MINUTES) or
the app restarts.

Usage: python scripts/import_data.py [path/to/products.xlsx]
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from database import crud
from database.db import async_session_maker, close_db
from services.import_excel import parse_products_excel
from services.product_service import CatalogError, ProductService
from utils.cache import BoundedTtlCache
from utils.logger import logger


async def resolve_categories(
    session: AsyncSession,
    category: str,
    subcategory: str | None,
) -> tuple[int, int | None]:
    parent = await crud.get_or_create_category(session, category)
    if not subcategory:
        return parent.id, None
    child = await crud.get_or_create_category(session, subcategory, parent_id=parent.id)
    return parent.id, child.id


async def import_products(
    items: list[dict],
    service: ProductService,
    session_maker: async_sessionmaker[AsyncSession],
) -> tuple[int, int, list[str]]:
    """
    Write parsed rows to the catalog.

    Returns:
        Tuple of (created, updated, errors)
    """
    created = 0
    updated = 0
    errors: list[str] = []

    for item in items:
        data = dict(item)
        category = data.pop("category")
        subcategory = data.pop("subcategory", None)

        try:
            async with session_maker() as session:
                category_id, subcategory_id = await resolve_categories(
                    session, category, subcategory
                )
                existing = None
                if data.get("sku"):
                    existing = await crud.get_product_by_sku(session, data["sku"])

            data["category_id"] = category_id
            data["subcategory_id"] = subcategory_id

            if existing is not None:
                await service.update_product(existing.id, **data)
                updated += 1
            else:
                await service.create_product(**data)
                created += 1
        except CatalogError as e:
            errors.append(f"'{item['title']}': {e}")
        except Exception as e:
            logger.error(f"Failed to import '{item['title']}': {e}", exc_info=True)
            errors.append(f"'{item['title']}': {e}")

    return created, updated, errors


async def import_all(file_path: Path | None = None) -> None:
    if file_path is None:
        data_dir = Path("data")
        xlsx_files = [f for f in data_dir.glob("*.xlsx") if not f.name.startswith("~$")]
        if not xlsx_files:
            print(f"No .xlsx files found in {data_dir.resolve()}")
            return
        file_path = xlsx_files[0]

    print(f"Processing file: {file_path.name}")
    items, parse_errors = parse_products_excel(file_path)
    for error in parse_errors:
        print(f"  {error}")

    cache = BoundedTtlCache(
        capacity=settings.cache_capacity_or_none,
        default_ttl=settings.cache_default_ttl,
    )
    service = ProductService(cache, async_session_maker)

    try:
        created, updated, errors = await import_products(items, service, async_session_maker)
    finally:
        await close_db()

    for error in errors:
        print(f"  ERROR {error}")

    print("\n=== DONE ===")
    print(f"Created: {created}")
    print(f"Updated: {updated}")
    print(f"Errors:  {len(parse_errors) + len(errors)}")


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    asyncio.run(import_all(path))
