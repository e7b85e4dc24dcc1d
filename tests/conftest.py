"""Pytest fixtures for catalog tests."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from database.models import Category, Product
from utils.cache import BoundedTtlCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Fresh product cache with capacity 3 and a 60s default TTL."""
    return BoundedTtlCache(capacity=3, default_ttl=60, clock=clock)


@pytest.fixture
def mock_session():
    """Create a mock async session."""
    session = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_session_maker(mock_session):
    return MagicMock(return_value=mock_session)


@pytest.fixture
def sample_category():
    category = MagicMock(spec=Category)
    category.id = 1
    category.name = "Electronics"
    category.parent_id = None
    return category


@pytest.fixture
def sample_subcategory(sample_category):
    category = MagicMock(spec=Category)
    category.id = 5
    category.name = "Audio & Headphones"
    category.parent_id = sample_category.id
    return category


def make_product(product_id: int, title: str, category, subcategory=None, **overrides):
    product = MagicMock(spec=Product)
    product.id = product_id
    product.title = title
    product.description = overrides.get("description", f"{title} description")
    product.image = overrides.get("image")
    product.price = overrides.get("price", Decimal("99.99"))
    product.stock = overrides.get("stock", 10)
    product.is_active = overrides.get("is_active", True)
    product.sku = overrides.get("sku")
    product.weight = overrides.get("weight", Decimal("0.250"))
    product.category_id = category.id
    product.category = category
    product.subcategory_id = subcategory.id if subcategory else None
    product.subcategory = subcategory
    product.created_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    product.updated_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return product


@pytest.fixture
def sample_product(sample_category, sample_subcategory):
    """Create a sample product."""
    return make_product(
        42, "Sony WH-1000XM5", sample_category, sample_subcategory,
        price=Decimal("399.99"), sku="WH-1000XM5",
    )


@pytest.fixture
def product_factory():
    return make_product
