"""
Legacy product to ProductListDTO transformation.

``transform_product`` is a pure function: no database access and no clock
reads. The current time is passed in explicitly because the "new arrival"
flag depends on it.

Example:
    >>> from datetime import datetime, timezone
    >>> doc = transform_product({"_id": 1, "name": "Solaris Aura Ring"},
    ...                         now=datetime.now(timezone.utc))
    >>> doc["slug"]
    'solaris-aura-ring'
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from shadowswap.documents import (
    CreatorRef,
    Inventory,
    LegacyGemstone,
    LegacyProduct,
    MaterialSpecs,
    MetalSpec,
    MetalSustainability,
    Pricing,
    ProductListDTO,
    ProductMetadata,
    StoneSpec,
    StoneSustainability,
)
from shadowswap.exceptions import SchemaError, TransformationError
from shadowswap.schema import validate_product

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/images/placeholder-product.jpg"
DEFAULT_CARAT = 1.0
MAX_CARAT = 20.0
MAX_TAGS = 5
NEW_ARRIVAL_WINDOW = timedelta(days=30)
DEFAULT_QUANTITY = 100

METAL_TYPE_MAP: dict[str, str] = {
    "gold": "14k-gold",
    "white-gold": "14k-white-gold",
    "rose-gold": "14k-rose-gold",
    "yellow-gold": "14k-gold",
    "platinum": "platinum",
    "silver": "silver",
    "sterling-silver": "silver",
    "titanium": "titanium",
}

STONE_TYPE_SYNONYMS: dict[str, str] = {
    "other": "moissanite",
}

CATEGORY_MAP: dict[str, str] = {
    "ring": "rings",
    "rings": "rings",
    "necklace": "necklaces",
    "necklaces": "necklaces",
    "earring": "earrings",
    "earrings": "earrings",
    "bracelet": "bracelets",
    "bracelets": "bracelets",
}

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACES = re.compile(r"\s+")
_SLUG_HYPHENS = re.compile(r"-+")


# =============================================================================
# Field mappers
# =============================================================================


def map_metal_type(value: Any) -> str:
    """Map a free-form metal name to the metal enum, defaulting to silver."""
    if not isinstance(value, str) or not value:
        return "silver"
    return METAL_TYPE_MAP.get(value.strip().lower(), "silver")


def map_stone_type(value: Any, lab_grown: Any = False) -> str | None:
    """
    Normalize a stone type.

    The type is lower-cased and mapped through the synonym table, then
    prefixed with ``lab-`` for lab-grown stones. Returns None when the
    source entry has no type.
    """
    if value is None or value == "":
        return None
    stone = str(value).strip().lower()
    stone = STONE_TYPE_SYNONYMS.get(stone, stone)
    if lab_grown and not stone.startswith("lab-"):
        stone = f"lab-{stone}"
    return stone


def validate_carat(value: Any) -> float:
    """
    Coerce a carat weight to a number within (0, 20].

    Anything that is not a number, or falls outside the range, is replaced
    by the 1.0 default.
    """
    carat = _to_number(value)
    if carat is None or math.isnan(carat) or carat <= 0 or carat > MAX_CARAT:
        return DEFAULT_CARAT
    return carat


def normalize_category(value: Any) -> str:
    """Map a category to the category enum; unknown values become "jewelry"."""
    if not isinstance(value, str):
        return "jewelry"
    return CATEGORY_MAP.get(value.strip().lower(), "jewelry")


def generate_slug(name: Any) -> str:
    """
    Build a URL-safe slug from a product name.

    Returns "product" when the name is empty or has no usable characters.
    """
    if not name:
        return "product"
    slug = _SLUG_STRIP.sub("", str(name).lower())
    slug = _SLUG_SPACES.sub("-", slug)
    slug = _SLUG_HYPHENS.sub("-", slug)
    slug = slug.strip("-")
    return slug or "product"


def resolve_primary_image(product: LegacyProduct) -> str:
    """
    Pick the primary image URL.

    Order: ``media.primary``, the image flagged ``isPrimary``, the first
    image, ``images.primary``, then the placeholder.
    """
    if product.media and _non_empty_str(product.media.primary):
        return product.media.primary

    images = product.images
    if isinstance(images, list) and images:
        flagged = next(
            (img for img in images if isinstance(img, Mapping) and img.get("isPrimary")),
            None,
        )
        for candidate in (flagged, images[0]):
            url = candidate.get("url") if isinstance(candidate, Mapping) else candidate
            if _non_empty_str(url):
                return url
    elif isinstance(images, Mapping) and _non_empty_str(images.get("primary")):
        return images["primary"]

    return PLACEHOLDER_IMAGE


def is_new_arrival(created_at: Any, now: datetime) -> bool:
    """True if ``created_at`` falls within the 30 days before ``now``."""
    created = _to_datetime(created_at)
    if created is None:
        return False
    return created > _as_utc(now) - NEW_ARRIVAL_WINDOW


def generate_tags(
    metal_type: str,
    stone_type: str | None,
    category: Any,
    existing: Any = None,
) -> list[str]:
    """
    Build the tag list.

    Metal type, stone type, the source category and any existing tags are
    deduplicated in first-seen order and truncated to five entries.
    """
    candidates: list[Any] = [metal_type, stone_type, category]
    if isinstance(existing, (list, tuple)):
        candidates.extend(existing)

    tags: list[str] = []
    for tag in candidates:
        if _non_empty_str(tag) and tag not in tags:
            tags.append(tag)
    return tags[:MAX_TAGS]


# =============================================================================
# Transformation
# =============================================================================


def transform_product(source: Mapping[str, Any], *, now: datetime) -> dict[str, Any]:
    """
    Transform one legacy product document into a ProductListDTO document.

    Args:
        source: The legacy document as read from the source collection.
        now: Transformation time, used for the new-arrival flag.

    Returns:
        The normalized document, validated against the ProductListDTO
        invariants.

    Raises:
        TransformationError: If the document cannot be mapped.
        SchemaError: If the mapped document breaks an invariant.
    """
    document_id = source.get("_id", source.get("id")) if isinstance(source, Mapping) else None
    try:
        product = LegacyProduct.model_validate(source)
        dto = build_product_dto(product, now=now)
        document = dto.to_document()
    except TransformationError:
        raise
    except (ValidationError, ValueError, TypeError, AttributeError) as e:
        raise TransformationError(
            f"Failed to transform product: {e}", document_id=document_id
        ) from e

    validate_product(document)
    return document


def build_product_dto(product: LegacyProduct, *, now: datetime) -> ProductListDTO:
    """Map a parsed legacy product onto the ProductListDTO model."""
    identifier = product.identifier
    if identifier is None:
        raise TransformationError("Product has no _id or id")

    metal = _build_metal(product)
    stone = _build_stone(product.first_gemstone)

    metadata = product.metadata
    analytics = product.analytics
    existing_tags = metadata.tags if metadata and metadata.tags else product.tags

    return ProductListDTO(
        id=identifier,
        name=text_or_default(product.name, ""),
        description=text_or_default(product.description, ""),
        category=normalize_category(product.category),
        subcategory=text_or_default(product.subcategory, "accessories"),
        slug=text_or_default(product.seo.slug if product.seo else None, "") or generate_slug(product.name),
        primary_image=resolve_primary_image(product),
        pricing=_build_pricing(product),
        inventory=_build_inventory(product),
        metadata=ProductMetadata(
            featured=bool(
                (metadata and metadata.featured) or (analytics and analytics.trending)
            ),
            bestseller=bool(
                (metadata and metadata.bestseller)
                or (analytics and (_to_number(analytics.purchases) or 0) > 10)
            ),
            new_arrival=bool(metadata and metadata.new_arrival)
            or is_new_arrival(product.created_at, now),
            tags=generate_tags(
                metal.type,
                stone.type if stone else None,
                product.category,
                existing_tags,
            ),
        ),
        material_specs=MaterialSpecs(metal=metal, stone=stone),
        creator=_build_creator(product),
    )


def _build_metal(product: LegacyProduct) -> MetalSpec:
    material = product.first_material
    if material is None:
        return MetalSpec()
    sustainability = material.sustainability
    return MetalSpec(
        type=map_metal_type(material.type),
        purity=text_or_default(material.purity, "925"),
        finish=text_or_default(material.finish, "polished"),
        sustainability=MetalSustainability(
            recycled=bool(sustainability and sustainability.recycled),
            ethically_sourced=bool(sustainability and sustainability.ethically_sourced),
        ),
    )


def _build_stone(gemstone: LegacyGemstone | None) -> StoneSpec | None:
    if gemstone is None:
        return None
    sustainability = gemstone.sustainability
    certification = gemstone.certification
    return StoneSpec(
        type=map_stone_type(gemstone.type, gemstone.is_lab_grown),
        carat=validate_carat(gemstone.carat),
        cut=text_or_default(gemstone.cut, "round"),
        clarity=text_or_default(gemstone.clarity, "VS"),
        color=text_or_default(gemstone.color, "colorless"),
        certification=text_or_default(certification.agency if certification else None, "none"),
        sustainability=StoneSustainability(
            lab_grown=bool(gemstone.is_lab_grown),
            conflict_free=bool(sustainability and sustainability.conflict_free),
            traceable=bool(sustainability and sustainability.traceable),
        ),
    )


def _build_pricing(product: LegacyProduct) -> Pricing:
    pricing = product.pricing
    raw_price = (pricing.base_price if pricing else None) or product.base_price or 0
    base_price = _to_number(raw_price)
    if base_price is None:
        raise TransformationError(
            f"Price is not a number: {raw_price!r}", document_id=product.identifier
        )
    currency = (pricing.currency if pricing else None) or product.currency
    return Pricing(base_price=base_price, currency=text_or_default(currency, "USD"))


def _build_inventory(product: LegacyProduct) -> Inventory:
    inventory = product.inventory
    if inventory is None:
        return Inventory()
    # A numeric "available" is a legacy stock count
    legacy_count = None if isinstance(inventory.available, bool) else inventory.available
    quantity = _to_number(inventory.quantity or legacy_count or DEFAULT_QUANTITY)
    if quantity is None:
        quantity = DEFAULT_QUANTITY
    return Inventory(
        available=inventory.available is not False,
        quantity=int(quantity) if float(quantity).is_integer() else quantity,
    )


def _build_creator(product: LegacyProduct) -> CreatorRef | None:
    if product.creator is None or product.creator.profile is None:
        return None
    profile = product.creator.profile
    return CreatorRef(
        handle=text_or_default(profile.handle, "") or None,
        name=text_or_default(profile.name, "") or None,
    )


# =============================================================================
# Coercion helpers
# =============================================================================


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def text_or_default(value: Any, default: str) -> str:
    """The string written for a free-text field, ``default`` when empty."""
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return None
    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


class ProductTransformer:
    """
    Stateful wrapper around ``transform_product`` holding a clock.

    The orchestrator fixes the clock once per run so every document of a
    run is judged against the same "now".

    Args:
        clock: Callable returning the current time (UTC).
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    def transform(self, source: Mapping[str, Any], now: datetime | None = None) -> dict[str, Any]:
        """
        Transform one document.

        Raises:
            TransformationError: If the document cannot be mapped.
            SchemaError: If the mapped document breaks an invariant.
        """
        return transform_product(source, now=now or self._clock())

    def try_transform(
        self, source: Mapping[str, Any], now: datetime
    ) -> tuple[dict[str, Any] | None, Exception | None]:
        """Transform one document, returning the error instead of raising it."""
        try:
            return self.transform(source, now), None
        except (TransformationError, SchemaError) as e:
            logger.debug("Document %s failed transformation: %s", source.get("_id"), e)
            return None, e


__all__ = [
    "PLACEHOLDER_IMAGE",
    "DEFAULT_CARAT",
    "METAL_TYPE_MAP",
    "STONE_TYPE_SYNONYMS",
    "CATEGORY_MAP",
    "map_metal_type",
    "map_stone_type",
    "validate_carat",
    "normalize_category",
    "text_or_default",
    "generate_slug",
    "resolve_primary_image",
    "is_new_arrival",
    "generate_tags",
    "transform_product",
    "build_product_dto",
    "ProductTransformer",
]
