"""
Canonical Product Schema

This module defines the canonical record that every catalog (food, beauty,
general, branded foods) is normalized into before scoring and caching.

Key Design Principles:
1. Shared fields use identical names regardless of source
2. Category-specific sub-data lives under `nutrition` (Food only) or
   `beauty` (Beauty / PersonalCare only)
3. Absent numeric values are None, never 0 - absence is meaningful
4. A resolved Product is never mutated; enrichment uses dataclasses.replace
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


UNKNOWN_PRODUCT_NAME = "Unknown Product"


# ============================================================================
# ENUMS
# ============================================================================

class ProductCategory(str, Enum):
    """Product categories, used to select scoring and warning rules."""
    FOOD = "FOOD"
    BEAUTY = "BEAUTY"
    PERSONAL_CARE = "PERSONAL_CARE"
    GENERAL = "GENERAL"
    UNKNOWN = "UNKNOWN"

    @property
    def is_cosmetic(self) -> bool:
        return self in (ProductCategory.BEAUTY, ProductCategory.PERSONAL_CARE)


class DataAvailability(str, Enum):
    """How much input data backed a computed score."""
    COMPLETE = "COMPLETE"          # All key metrics available
    PARTIAL = "PARTIAL"            # Some metrics available
    INSUFFICIENT = "INSUFFICIENT"  # Very little data available


class CatalogSource(str, Enum):
    """External catalogs the resolver knows about."""
    FOOD = "food"
    BEAUTY = "beauty"
    GENERAL = "general"
    BRANDED = "branded"


# ============================================================================
# SUB-RECORDS
# ============================================================================

@dataclass
class NutritionData:
    """Per-100g nutrition values plus official grade/processing level."""
    sugars_100g: Optional[float] = None
    salt_100g: Optional[float] = None
    saturated_fat_100g: Optional[float] = None
    proteins_100g: Optional[float] = None
    fiber_100g: Optional[float] = None
    energy_kcal_100g: Optional[float] = None
    official_grade: Optional[str] = None       # NutriScore letter a-e
    processing_level: Optional[int] = None     # NOVA group 1-4

    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())


@dataclass
class BeautyData:
    """Cosmetic attributes. Booleans are tri-state: None means unknown."""
    harmful_ingredients: Optional[List[str]] = None
    allergens: Optional[List[str]] = None
    is_vegan: Optional[bool] = None
    is_cruelty_free: Optional[bool] = None
    is_paraben_free: Optional[bool] = None
    is_sulfate_free: Optional[bool] = None

    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())


# ============================================================================
# CANONICAL RECORD
# ============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Product:
    """
    Canonical product record.

    `nutrition` is only populated for FOOD and `beauty` only for BEAUTY and
    PERSONAL_CARE. `health_score` stays 0 until the Score Engine runs.
    """
    code: str
    name: str
    category: ProductCategory
    brand: Optional[str] = None
    image_ref: Optional[str] = None
    category_text: Optional[str] = None
    ingredients_text: Optional[str] = None

    nutrition: Optional[NutritionData] = None
    beauty: Optional[BeautyData] = None
    allergens: List[str] = field(default_factory=list)

    health_score: int = 0
    data_availability: DataAvailability = DataAvailability.INSUFFICIENT
    warnings: List[str] = field(default_factory=list)

    source: Optional[str] = None
    resolved_at: datetime = field(default_factory=utcnow)
    cached_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.code:
            raise ValueError("Product code must be a non-empty string")


@dataclass
class ScoreResult:
    """A score is meaningless without its confidence level."""
    score: int
    data_availability: DataAvailability


@dataclass
class SearchHit:
    """A single free-text search result, normalized across catalogs."""
    code: str
    name: str
    source: str
    brand: Optional[str] = None
    image_ref: Optional[str] = None
    category_text: Optional[str] = None
    nutrition: Optional[NutritionData] = None


@dataclass
class Alternative:
    """
    A better-scoring substitute.

    `is_synthetic` is True when the suggestion is generic advice built from
    the current product's weaknesses and no real product is claimed to exist.
    """
    name: str
    improvement_reason: str
    score_difference: int
    product: Optional[Product] = None
    is_synthetic: bool = False


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def dataclass_to_dict(obj: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes to JSON-safe values"""
    if hasattr(obj, '__dataclass_fields__'):
        return {k: dataclass_to_dict(getattr(obj, k)) for k in obj.__dataclass_fields__}
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, list):
        return [dataclass_to_dict(item) for item in obj]
    elif isinstance(obj, dict):
        return {k: dataclass_to_dict(v) for k, v in obj.items()}
    return obj
