"""
Legacy product documents and deterministic clocks for tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from shadowswap.storage import InMemoryDatabase

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def legacy_product(number: int = 1, **overrides: Any) -> dict[str, Any]:
    """
    Build a well-formed legacy product.

    The transformed document is a 14k-gold ring with a lab-grown diamond.
    Top-level keys can be replaced through ``overrides``.
    """
    document: dict[str, Any] = {
        "_id": f"prod-{number:04d}",
        "name": f"Solaris Aura Ring {number}",
        "description": "Hand-finished engagement ring with a lab-grown diamond",
        "category": "ring",
        "pricing": {"basePrice": 500 + number, "currency": "USD"},
        "inventory": {"available": True, "quantity": 10},
        "customization": {
            "materials": [
                {
                    "type": "gold",
                    "purity": "14k",
                    "finish": "polished",
                    "sustainability": {"recycled": True, "ethicallySourced": True},
                }
            ],
            "gemstones": [
                {
                    "type": "diamond",
                    "carat": 1.5,
                    "cut": "oval",
                    "clarity": "VVS1",
                    "color": "D",
                    "isLabGrown": True,
                    "certification": {"agency": "IGI"},
                    "sustainability": {"conflictFree": True, "traceable": True},
                }
            ],
        },
        "metadata": {"featured": number % 2 == 0, "bestseller": False, "tags": ["engagement"]},
        "media": {"primary": f"/images/products/{number}.jpg"},
        "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    document.update(overrides)
    return document


def malformed_product(number: int) -> dict[str, Any]:
    """A legacy product whose price cannot be parsed."""
    return legacy_product(number, pricing={"basePrice": "call for price"})


def product_set(
    count: int,
    malformed: int = 0,
    placement: str = "last",
) -> list[dict[str, Any]]:
    """
    ``count`` products, ``malformed`` of which fail transformation.

    ``placement`` puts the malformed products "last", "first" or
    "interleaved" (every ``count // malformed``-th product).
    """
    if placement == "last":
        bad = set(range(count - malformed + 1, count + 1))
    elif placement == "first":
        bad = set(range(1, malformed + 1))
    elif placement == "interleaved":
        step = count // malformed if malformed else 1
        bad = {k * step for k in range(1, malformed + 1)}
    else:
        raise ValueError(f"Unknown placement: {placement}")
    return [
        malformed_product(n) if n in bad else legacy_product(n) for n in range(1, count + 1)
    ]


async def seed_products(
    database: InMemoryDatabase,
    documents: Sequence[dict[str, Any]],
    collection: str = "products",
) -> None:
    await database.seed(collection, documents)


class StepClock:
    """
    Monotonic clock advancing a fixed step on every read.

    A query timed with two reads therefore always measures ``step_ms``.
    """

    def __init__(self, step_ms: float = 1.0, start: float = 1000.0) -> None:
        self.step = step_ms / 1000
        self.value = start
        self.reads = 0

    def __call__(self) -> float:
        self.value += self.step
        self.reads += 1
        return self.value
