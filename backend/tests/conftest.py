"""Pytest configuration and fixtures."""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from fakes import InMemoryRepositories


@pytest.fixture
def repos() -> InMemoryRepositories:
    """Fresh in-memory repository bundle."""
    return InMemoryRepositories()


@pytest.fixture
def restaurant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def period(repos, restaurant_id):
    """Active week with nothing recorded yet."""
    return repos.add_period(restaurant_id, date(2024, 3, 4), date(2024, 3, 10), status="active", name="Week 10")


@pytest.fixture
def item(repos, restaurant_id):
    """Tracked ingredient with explicit variance thresholds."""
    return repos.items.add(
        restaurant_id=restaurant_id,
        name="Chicken Breast",
        category="proteins",
        unit="lbs",
        unit_cost=Decimal("2.00"),
        variance_threshold_quantity=Decimal("5"),
        variance_threshold_dollar=Decimal("25"),
    )


@pytest.fixture
def menu_item(repos, restaurant_id):
    """Sellable dish the recipe scenarios sell."""
    return repos.items.add(restaurant_id=restaurant_id, name="Grilled Chicken Plate", unit="pieces", unit_cost=Decimal("0"))
