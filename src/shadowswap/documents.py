"""
Document models for the product catalog.

The legacy side is a partial structure: every field is optional and scalar
values are kept untyped, because the source collection guarantees nothing.
The target side, ProductListDTO, is fully specified and is what the
transformer produces.

Models in this module:

Legacy (source):
    - LegacyProduct and its nested substructures

Target:
    - ProductListDTO and its nested structures
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PRODUCT_CATEGORIES: tuple[str, ...] = ("rings", "necklaces", "earrings", "bracelets", "jewelry")
"""Allowed values of ProductListDTO.category."""

METAL_TYPES: tuple[str, ...] = (
    "14k-gold",
    "14k-white-gold",
    "14k-rose-gold",
    "platinum",
    "silver",
    "titanium",
)
"""Allowed values of materialSpecs.metal.type."""

REQUIRED_FIELDS: tuple[str, ...] = (
    "_id",
    "name",
    "description",
    "category",
    "subcategory",
    "slug",
    "primaryImage",
    "pricing",
    "inventory",
    "metadata",
    "materialSpecs",
)
"""Top-level keys every ProductListDTO document must contain."""

ProductCategory = Literal["rings", "necklaces", "earrings", "bracelets", "jewelry"]
MetalType = Literal["14k-gold", "14k-white-gold", "14k-rose-gold", "platinum", "silver", "titanium"]


# =============================================================================
# Legacy product (source schema)
# =============================================================================


class _LegacyModel(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class LegacySustainability(_LegacyModel):
    recycled: Any = None
    ethically_sourced: Any = Field(default=None, alias="ethicallySourced")
    conflict_free: Any = Field(default=None, alias="conflictFree")
    traceable: Any = None


class LegacyCertification(_LegacyModel):
    agency: Any = None


class LegacyMaterial(_LegacyModel):
    """A metal entry of ``customization.materials``."""

    type: Any = None
    purity: Any = None
    finish: Any = None
    sustainability: LegacySustainability | None = None


class LegacyGemstone(_LegacyModel):
    """A stone entry of ``customization.gemstones``."""

    type: Any = None
    carat: Any = None
    cut: Any = None
    clarity: Any = None
    color: Any = None
    certification: LegacyCertification | None = None
    is_lab_grown: Any = Field(default=None, alias="isLabGrown")
    sustainability: LegacySustainability | None = None


class LegacyCustomization(_LegacyModel):
    materials: list[LegacyMaterial] | None = None
    gemstones: list[LegacyGemstone] | None = None


class LegacyPricing(_LegacyModel):
    base_price: Any = Field(default=None, alias="basePrice")
    currency: Any = None


class LegacyInventory(_LegacyModel):
    available: Any = None
    quantity: Any = None


class LegacyMetadata(_LegacyModel):
    featured: Any = None
    bestseller: Any = None
    new_arrival: Any = Field(default=None, alias="newArrival")
    tags: Any = None


class LegacyAnalytics(_LegacyModel):
    trending: Any = None
    purchases: Any = None


class LegacyMedia(_LegacyModel):
    primary: Any = None


class LegacySeo(_LegacyModel):
    slug: Any = None


class LegacyCreatorProfile(_LegacyModel):
    handle: Any = None
    name: Any = None


class LegacyCreator(_LegacyModel):
    profile: LegacyCreatorProfile | None = None


class LegacyProduct(_LegacyModel):
    """
    A product document as stored before the migration.

    ``images`` is either a list (of URL strings or ``{url, isPrimary}``
    objects) or an object with a ``primary`` key, so it stays untyped.
    """

    document_id: Any = Field(default=None, alias="_id")
    legacy_id: Any = Field(default=None, alias="id")
    name: Any = None
    description: Any = None
    category: Any = None
    subcategory: Any = None
    base_price: Any = Field(default=None, alias="basePrice")
    currency: Any = None
    tags: Any = None
    created_at: Any = Field(default=None, alias="createdAt")
    images: Any = None
    customization: LegacyCustomization | None = None
    pricing: LegacyPricing | None = None
    inventory: LegacyInventory | None = None
    metadata: LegacyMetadata | None = None
    analytics: LegacyAnalytics | None = None
    media: LegacyMedia | None = None
    seo: LegacySeo | None = None
    creator: LegacyCreator | None = None

    @property
    def identifier(self) -> Any:
        """The surrogate identifier, ``_id`` first then ``id``."""
        return self.document_id if self.document_id is not None else self.legacy_id

    @property
    def first_material(self) -> LegacyMaterial | None:
        if self.customization and self.customization.materials:
            return self.customization.materials[0]
        return None

    @property
    def first_gemstone(self) -> LegacyGemstone | None:
        if self.customization and self.customization.gemstones:
            return self.customization.gemstones[0]
        return None


# =============================================================================
# ProductListDTO (target schema)
# =============================================================================


class _DTOModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Pricing(_DTOModel):
    base_price: float = Field(alias="basePrice")
    currency: str = "USD"


class Inventory(_DTOModel):
    available: bool = True
    quantity: int | float = 100


class ProductMetadata(_DTOModel):
    featured: bool = False
    bestseller: bool = False
    new_arrival: bool = Field(default=False, alias="newArrival")
    tags: list[str] = Field(default_factory=list, max_length=5)


class MetalSustainability(_DTOModel):
    recycled: bool = False
    ethically_sourced: bool = Field(default=False, alias="ethicallySourced")


class MetalSpec(_DTOModel):
    type: MetalType = "silver"
    purity: str = "925"
    finish: str = "polished"
    sustainability: MetalSustainability = Field(default_factory=MetalSustainability)


class StoneSustainability(_DTOModel):
    lab_grown: bool = Field(default=False, alias="labGrown")
    conflict_free: bool = Field(default=False, alias="conflictFree")
    traceable: bool = False


class StoneSpec(_DTOModel):
    type: str | None = None
    carat: float = 1.0
    cut: str = "round"
    clarity: str = "VS"
    color: str = "colorless"
    certification: str = "none"
    sustainability: StoneSustainability = Field(default_factory=StoneSustainability)


class MaterialSpecs(_DTOModel):
    metal: MetalSpec = Field(default_factory=MetalSpec)
    stone: StoneSpec | None = None


class CreatorRef(_DTOModel):
    handle: str | None = None
    name: str | None = None


class ProductListDTO(_DTOModel):
    """
    The normalized product document written to the shadow collection.

    ``stone`` and ``creator`` are omitted from the stored document when
    absent rather than stored as null.
    """

    id: Any = Field(alias="_id")
    name: str = ""
    description: str = ""
    category: ProductCategory = "jewelry"
    subcategory: str = "accessories"
    slug: str
    primary_image: str = Field(alias="primaryImage", min_length=1)
    pricing: Pricing
    inventory: Inventory = Field(default_factory=Inventory)
    metadata: ProductMetadata = Field(default_factory=ProductMetadata)
    material_specs: MaterialSpecs = Field(default_factory=MaterialSpecs, alias="materialSpecs")
    creator: CreatorRef | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the document as stored, keyed by the camelCase field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = [
    "PRODUCT_CATEGORIES",
    "METAL_TYPES",
    "REQUIRED_FIELDS",
    "ProductCategory",
    "MetalType",
    "LegacyProduct",
    "LegacyCustomization",
    "LegacyMaterial",
    "LegacyGemstone",
    "LegacySustainability",
    "LegacyCertification",
    "LegacyPricing",
    "LegacyInventory",
    "LegacyMetadata",
    "LegacyAnalytics",
    "LegacyMedia",
    "LegacySeo",
    "LegacyCreator",
    "LegacyCreatorProfile",
    "ProductListDTO",
    "Pricing",
    "Inventory",
    "ProductMetadata",
    "MaterialSpecs",
    "MetalSpec",
    "MetalSustainability",
    "StoneSpec",
    "StoneSustainability",
    "CreatorRef",
]
