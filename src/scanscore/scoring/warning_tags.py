"""
Advisory warning tags.

Independent of the score engine: thresholds here are not derived from the
score, and a nutrient can lower the score without producing a warning.
"""

from typing import List

from scanscore.core.schema import Product, ProductCategory

HIGH_SUGAR = "high sugar"
HIGH_SALT = "high salt"
HIGH_SATURATED_FAT = "high saturated fat"
ULTRA_PROCESSED = "ultra-processed"

CONTAINS_PARABENS = "contains parabens"
CONTAINS_SULFATES = "contains sulfates"
SYNTHETIC_FRAGRANCE = "synthetic fragrance"
NOT_CRUELTY_FREE = "not cruelty-free"

SUGAR_WARNING_G = 15.0
SALT_WARNING_G = 1.5
SATURATED_FAT_WARNING_G = 5.0
ULTRA_PROCESSED_LEVEL = 4


def generate_warnings(product: Product) -> List[str]:
    """Warning tags for `product`, in check order."""
    if product.category == ProductCategory.FOOD:
        return _food_warnings(product)
    if product.category.is_cosmetic:
        return _beauty_warnings(product)
    return []


def _food_warnings(product: Product) -> List[str]:
    warnings: List[str] = []
    nutrition = product.nutrition
    if nutrition is None:
        return warnings

    if nutrition.sugars_100g is not None and nutrition.sugars_100g > SUGAR_WARNING_G:
        warnings.append(HIGH_SUGAR)
    if nutrition.salt_100g is not None and nutrition.salt_100g > SALT_WARNING_G:
        warnings.append(HIGH_SALT)
    if nutrition.saturated_fat_100g is not None and nutrition.saturated_fat_100g > SATURATED_FAT_WARNING_G:
        warnings.append(HIGH_SATURATED_FAT)
    if nutrition.processing_level == ULTRA_PROCESSED_LEVEL:
        warnings.append(ULTRA_PROCESSED)

    return warnings


def _beauty_warnings(product: Product) -> List[str]:
    warnings: List[str] = []
    beauty = product.beauty
    if beauty is None:
        return warnings

    harmful = [name.lower() for name in beauty.harmful_ingredients or []]
    if any("paraben" in name for name in harmful):
        warnings.append(CONTAINS_PARABENS)
    if any("sulfate" in name for name in harmful):
        warnings.append(CONTAINS_SULFATES)
    if any("fragrance" in name or "parfum" in name for name in harmful):
        warnings.append(SYNTHETIC_FRAGRANCE)

    if beauty.is_cruelty_free is False:
        warnings.append(NOT_CRUELTY_FREE)

    return warnings
