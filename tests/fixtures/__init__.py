"""
Shared test fixtures for shadowswap tests.
"""

from tests.fixtures.products import (
    FIXED_NOW,
    StepClock,
    legacy_product,
    malformed_product,
    product_set,
    seed_products,
)

__all__ = [
    "FIXED_NOW",
    "StepClock",
    "legacy_product",
    "malformed_product",
    "product_set",
    "seed_products",
]
