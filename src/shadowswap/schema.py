"""
Shallow validation of ProductListDTO documents.

Only three invariants are machine-checked: every required top-level key is
present, ``pricing.basePrice`` is a number >= 0 and
``materialSpecs.metal.type`` is non-empty. Nested optional structures
(stone, creator) are not inspected.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from shadowswap.documents import REQUIRED_FIELDS
from shadowswap.exceptions import InvalidTypeError, MissingFieldError, SchemaError


def validate_product(document: Mapping[str, Any]) -> None:
    """
    Validate a transformed product document.

    Args:
        document: The document to check.

    Raises:
        MissingFieldError: If a required field is absent.
        InvalidTypeError: If basePrice or the metal type is invalid.
    """
    document_id = document.get("_id")

    for name in REQUIRED_FIELDS:
        if name not in document:
            raise MissingFieldError(name, document_id)

    pricing = document["pricing"]
    if not isinstance(pricing, Mapping) or "basePrice" not in pricing:
        raise MissingFieldError("pricing.basePrice", document_id)
    price = pricing["basePrice"]
    if not _is_number(price) or price < 0:
        raise InvalidTypeError("pricing.basePrice", "non-negative number", price, document_id)

    specs = document["materialSpecs"]
    metal = specs.get("metal") if isinstance(specs, Mapping) else None
    if not isinstance(metal, Mapping) or "type" not in metal:
        raise MissingFieldError("materialSpecs.metal.type", document_id)
    metal_type = metal["type"]
    if not isinstance(metal_type, str) or not metal_type:
        raise InvalidTypeError("materialSpecs.metal.type", "non-empty string", metal_type, document_id)


def is_valid_product(document: Mapping[str, Any]) -> bool:
    """Return True if ``validate_product`` accepts the document."""
    try:
        validate_product(document)
    except SchemaError:
        return False
    return True


def missing_fields(document: Mapping[str, Any]) -> list[str]:
    """Return the required top-level fields absent from the document."""
    return [name for name in REQUIRED_FIELDS if name not in document]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


__all__ = [
    "validate_product",
    "is_valid_product",
    "missing_fields",
]
