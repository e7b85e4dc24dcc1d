"""CRUD operations for the catalog tables.

These functions are the authoritative store and know nothing about caching;
ProductService layers the product cache on top of them.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import Category, Product
from utils.logger import logger


SORTABLE_FIELDS = ("created_at", "updated_at", "title", "price", "stock", "id")
UPDATABLE_FIELDS = (
    "title", "description", "image", "price", "stock", "is_active",
    "sku", "weight", "category_id", "subcategory_id",
)


@dataclass
class ProductQuery:
    """Filters, sorting and pagination for product listings."""

    category_id: int | None = None
    subcategory_id: int | None = None
    search: str | None = None
    min_price: Decimal | float | None = None
    max_price: Decimal | float | None = None
    is_active: bool | None = None
    sort_by: str = "created_at"
    sort_order: str = "DESC"
    page: int = 1
    limit: int = 10


# ============== CATEGORY OPERATIONS ==============

async def get_category(session: AsyncSession, category_id: int) -> Category | None:
    result = await session.execute(
        select(Category).where(Category.id == category_id)
    )
    return result.scalar_one_or_none()


async def get_category_by_name(session: AsyncSession, name: str) -> Category | None:
    result = await session.execute(
        select(Category).where(Category.name == name)
    )
    return result.scalar_one_or_none()


async def get_all_categories(session: AsyncSession) -> list[Category]:
    result = await session.execute(
        select(Category).order_by(Category.name)
    )
    return list(result.scalars().all())


async def get_or_create_category(
    session: AsyncSession,
    name: str,
    parent_id: int | None = None,
) -> Category:
    """Return the category with this name, creating it if needed."""
    category = await get_category_by_name(session, name)
    if category:
        return category

    category = Category(name=name, parent_id=parent_id)
    session.add(category)
    await session.commit()
    await session.refresh(category)

    logger.info(f"Created category: {category.id} ({name}), parent={parent_id}")
    return category


# ============== PRODUCT OPERATIONS ==============

def _with_categories(stmt):
    # populate_existing refreshes rows already in the identity map after updates
    return stmt.options(
        selectinload(Product.category),
        selectinload(Product.subcategory),
    ).execution_options(populate_existing=True)


async def get_product(session: AsyncSession, product_id: int) -> Product | None:
    result = await session.execute(
        _with_categories(select(Product)).where(Product.id == product_id)
    )
    return result.scalar_one_or_none()


async def list_products(
    session: AsyncSession,
    query: ProductQuery,
) -> tuple[list[Product], int]:
    """
    List products matching the query.

    Returns:
        Tuple of (page of products, total matching count)
    """
    conditions = []

    if query.category_id is not None:
        conditions.append(Product.category_id == query.category_id)
    if query.subcategory_id is not None:
        conditions.append(Product.subcategory_id == query.subcategory_id)
    if query.search:
        pattern = f"%{query.search}%"
        conditions.append(
            or_(Product.title.ilike(pattern), Product.description.ilike(pattern))
        )
    if query.min_price is not None:
        conditions.append(Product.price >= query.min_price)
    if query.max_price is not None:
        conditions.append(Product.price <= query.max_price)
    if query.is_active is not None:
        conditions.append(Product.is_active == query.is_active)

    if query.sort_by not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort products by {query.sort_by!r}")
    column = getattr(Product, query.sort_by)
    order = column.asc() if query.sort_order.upper() == "ASC" else column.desc()

    page = max(query.page, 1)
    limit = max(query.limit, 1)

    total_result = await session.execute(
        select(func.count(Product.id)).where(*conditions)
    )
    total = total_result.scalar_one()

    result = await session.execute(
        _with_categories(select(Product))
        .where(*conditions)
        .order_by(order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_recent_products(session: AsyncSession, limit: int) -> list[Product]:
    """Newest active products, used to warm the product cache."""
    result = await session.execute(
        _with_categories(select(Product))
        .where(Product.is_active == True)
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def create_product(
    session: AsyncSession,
    title: str,
    price: Decimal | float,
    category_id: int,
    description: str = "",
    image: str | None = None,
    subcategory_id: int | None = None,
    stock: int = 0,
    is_active: bool = True,
    sku: str | None = None,
    weight: Decimal | float | None = None,
) -> Product:
    product = Product(
        title=title,
        price=Decimal(str(price)),
        category_id=category_id,
        description=description,
        image=image,
        subcategory_id=subcategory_id,
        stock=stock,
        is_active=is_active,
        sku=sku,
        weight=Decimal(str(weight)) if weight is not None else None,
    )
    session.add(product)
    await session.commit()

    logger.info(f"Created product: {product.id} ({title})")
    return await get_product(session, product.id)


async def update_product(
    session: AsyncSession,
    product_id: int,
    **kwargs,
) -> Product | None:
    """
    Apply field changes to a product.

    Raises:
        ValueError: if a field is not in UPDATABLE_FIELDS
    """
    unknown = sorted(set(kwargs) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(unknown)}")

    product = await get_product(session, product_id)
    if not product:
        return None

    for key, value in kwargs.items():
        if key in ("price", "weight") and value is not None:
            value = Decimal(str(value))
        setattr(product, key, value)

    await session.commit()

    logger.info(f"Updated product {product_id}: {kwargs}")
    return await get_product(session, product_id)


async def delete_product(session: AsyncSession, product_id: int) -> bool:
    product = await get_product(session, product_id)
    if not product:
        return False

    await session.delete(product)
    await session.commit()

    logger.info(f"Deleted product {product_id}")
    return True


async def get_product_by_sku(session: AsyncSession, sku: str) -> Product | None:
    result = await session.execute(
        _with_categories(select(Product)).where(Product.sku == sku)
    )
    return result.scalar_one_or_none()
