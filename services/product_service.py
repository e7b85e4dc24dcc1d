"""Product lookups backed by the product cache (cache-aside)."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import crud
from database.crud import ProductQuery
from database.models import Product
from utils.cache import BoundedTtlCache
from utils.logger import logger


class CatalogError(Exception):
    """Base error for catalog operations."""


class ProductNotFoundError(CatalogError):
    def __init__(self, product_id: int):
        super().__init__(f"Product with ID {product_id} not found")
        self.product_id = product_id


class CategoryNotFoundError(CatalogError):
    def __init__(self, category_id: int, kind: str = "Category"):
        super().__init__(f"{kind} with ID {category_id} not found")
        self.category_id = category_id


def _to_float(value: Decimal | float | None) -> float | None:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class ProductSnapshot:
    """Immutable copy of a product row, safe to share through the cache."""

    id: int
    title: str
    description: str
    image: str | None
    price: float
    stock: int
    is_active: bool
    sku: str | None
    weight: float | None
    category_id: int
    category_name: str | None
    subcategory_id: int | None
    subcategory_name: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, product: Product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            title=product.title,
            description=product.description,
            image=product.image,
            price=_to_float(product.price),
            stock=product.stock,
            is_active=product.is_active,
            sku=product.sku,
            weight=_to_float(product.weight),
            category_id=product.category_id,
            category_name=product.category.name if product.category else None,
            subcategory_id=product.subcategory_id,
            subcategory_name=product.subcategory.name if product.subcategory else None,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


@dataclass(frozen=True)
class ProductPage:
    products: list[ProductSnapshot]
    total: int
    page: int
    limit: int


class ProductService:
    """
    Catalog operations for products.

    Reads check the cache first and fall back to the database, writing the
    fetched snapshot back unless the key was invalidated during the fetch.
    Updates and deletes invalidate the cached entry before and after
    touching the database so a later read cannot see stale data.
    The cache lock is never held across database I/O.
    """

    def __init__(
        self,
        cache: BoundedTtlCache,
        session_maker: async_sessionmaker[AsyncSession],
    ):
        self.cache = cache
        self._session_maker = session_maker

    async def get_product(self, product_id: int) -> ProductSnapshot:
        """
        Get product by id.

        Raises:
            ProductNotFoundError: if the product does not exist
        """
        cached = self.cache.get(product_id)
        if cached is not None:
            return cached

        # a write that lands while we wait on the database bumps the
        # generation, and the row read here must not be cached then
        generation = self.cache.generation()
        logger.debug(f"Fetching product {product_id} from database")
        async with self._session_maker() as session:
            product = await crud.get_product(session, product_id)

        if product is None:
            raise ProductNotFoundError(product_id)

        snapshot = ProductSnapshot.from_model(product)
        self.cache.set_if_unchanged(product_id, snapshot, generation)
        return snapshot

    async def list_products(self, query: ProductQuery | None = None) -> ProductPage:
        """Filtered, paginated listing. Not cached."""
        query = query or ProductQuery()
        async with self._session_maker() as session:
            products, total = await crud.list_products(session, query)

        return ProductPage(
            products=[ProductSnapshot.from_model(p) for p in products],
            total=total,
            page=query.page,
            limit=query.limit,
        )

    async def create_product(self, **data: Any) -> ProductSnapshot:
        """
        Create a product and cache it.

        Raises:
            CategoryNotFoundError: if the category or subcategory is missing
        """
        async with self._session_maker() as session:
            await self._validate_categories(
                session, data.get("category_id"), data.get("subcategory_id")
            )
            product = await crud.create_product(session, **data)

        snapshot = ProductSnapshot.from_model(product)
        self.cache.set(snapshot.id, snapshot)
        return snapshot

    async def update_product(self, product_id: int, **changes: Any) -> ProductSnapshot:
        """
        Update a product and re-cache the stored result.

        The cache entry is invalidated before and after the write so that a
        concurrent get_product() cannot put the pre-update row back.

        Raises:
            ProductNotFoundError: if the product does not exist
            CategoryNotFoundError: if a new category or subcategory is missing
        """
        self.cache.delete(product_id)
        logger.info(f"Updating product {product_id} - cache cleared")

        async with self._session_maker() as session:
            if await crud.get_product(session, product_id) is None:
                raise ProductNotFoundError(product_id)
            await self._validate_categories(
                session, changes.get("category_id"), changes.get("subcategory_id")
            )
            product = await crud.update_product(session, product_id, **changes)

        self.cache.delete(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        snapshot = ProductSnapshot.from_model(product)
        self.cache.set(product_id, snapshot)
        return snapshot

    async def delete_product(self, product_id: int) -> None:
        """
        Delete a product.

        Raises:
            ProductNotFoundError: if the product does not exist
        """
        self.cache.delete(product_id)
        logger.info(f"Removing product {product_id} - cache cleared")

        async with self._session_maker() as session:
            deleted = await crud.delete_product(session, product_id)

        self.cache.delete(product_id)
        if not deleted:
            raise ProductNotFoundError(product_id)

    async def warm_up(self, limit: int) -> int:
        """Preload the newest active products. Returns the number cached."""
        if limit <= 0:
            return 0

        generation = self.cache.generation()
        async with self._session_maker() as session:
            products = await crud.get_recent_products(session, limit)

        # oldest first so the newest product ends up most recently used
        for product in reversed(products):
            self.cache.set_if_unchanged(
                product.id, ProductSnapshot.from_model(product), generation
            )

        logger.info(f"Product cache warmed with {len(products)} products")
        return len(products)

    async def _validate_categories(
        self,
        session: AsyncSession,
        category_id: int | None,
        subcategory_id: int | None,
    ) -> None:
        if category_id is not None:
            if await crud.get_category(session, category_id) is None:
                raise CategoryNotFoundError(category_id)
        if subcategory_id:
            if await crud.get_category(session, subcategory_id) is None:
                raise CategoryNotFoundError(subcategory_id, kind="Subcategory")
