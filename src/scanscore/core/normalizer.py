"""
Record Normalizer

Transforms raw catalog payloads (Open Food Facts, Open Beauty Facts,
Open Products Facts, USDA FoodData Central) into the canonical Product
for consistent downstream scoring, merging and caching.

Usage:
    from scanscore.core.normalizer import normalize_record

    # Normalize an Open Food Facts product object
    product = normalize_record(off_product, source="food")

    # Normalize a USDA search hit
    product = normalize_record(usda_food, source="branded")
"""

import logging
import math
from typing import Any, Dict, List, Optional

from scanscore.core.schema import (
    UNKNOWN_PRODUCT_NAME,
    BeautyData,
    CatalogSource,
    NutritionData,
    Product,
    ProductCategory,
    SearchHit,
)
from scanscore.core.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)


# USDA nutrient ids (foodNutrients[].nutrientId)
USDA_ENERGY_KCAL = 1008
USDA_PROTEIN = 1003
USDA_SATURATED_FAT = 1258
USDA_FIBER = 1079
USDA_SUGARS_TOTAL = 2000
USDA_SODIUM = 1093

# USDA servingSizeUnit values that denote grams
MASS_UNITS = {"g", "grm", "gram", "grams"}

# Open Food Facts nutriment keys → NutritionData fields
OFF_NUTRIMENT_FIELDS = {
    "sugars_100g": "sugars_100g",
    "salt_100g": "salt_100g",
    "saturated-fat_100g": "saturated_fat_100g",
    "proteins_100g": "proteins_100g",
    "fiber_100g": "fiber_100g",
    "energy-kcal_100g": "energy_kcal_100g",
}


# ============================================================================
# MAIN NORMALIZER
# ============================================================================

def normalize_record(
    raw: Dict[str, Any],
    source: str,
    code: Optional[str] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> Product:
    """
    Main entry point: Normalize a raw catalog record to the canonical Product.

    Args:
        raw: The product object as returned by the catalog
        source: One of "food", "beauty", "general", "branded"
        code: Barcode to use when the payload carries none
        vocabulary: Vocabulary tables (defaults to the bundled ones)

    Returns:
        Canonical Product (unscored)
    """
    vocab = vocabulary or get_vocabulary()
    source_key = source.lower() if isinstance(source, str) else source

    if source_key == CatalogSource.FOOD.value:
        return _normalize_food(raw, code)
    elif source_key == CatalogSource.BEAUTY.value:
        return _normalize_beauty(raw, code, vocab)
    elif source_key == CatalogSource.GENERAL.value:
        return _normalize_general(raw, code)
    elif source_key == CatalogSource.BRANDED.value:
        return _normalize_branded(raw, code, vocab)
    else:
        raise ValueError(f"Unknown source: {source}. Must be 'food', 'beauty', 'general' or 'branded'")


# ============================================================================
# SHARED HELPERS
# ============================================================================

def _to_float(value: Any) -> Optional[float]:
    """Coerce catalog numbers (sometimes strings) to float, None if unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None and math.isfinite(number) else None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _resolve_code(raw_code: Any, fallback: Optional[str]) -> str:
    code = _clean_text(raw_code) or _clean_text(fallback)
    if not code:
        raise ValueError("Catalog record has no product code")
    return code


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def dedupe_allergens(values: List[str]) -> List[str]:
    """Order-preserving, case-insensitive de-duplication."""
    seen = set()
    result = []
    for value in values:
        key = value.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(value.strip())
    return result


# ============================================================================
# FOOD CATALOG (Open Food Facts)
# ============================================================================

def _food_nutrition(raw: Dict[str, Any]) -> Optional[NutritionData]:
    nutriments = raw.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}
    values = {
        field_name: _to_float(nutriments.get(key))
        for key, field_name in OFF_NUTRIMENT_FIELDS.items()
    }
    grade = _clean_text(raw.get("nutriscore_grade"))
    nutrition = NutritionData(
        official_grade=grade.lower() if grade else None,
        processing_level=_to_int(raw.get("nova_group")),
        **values,
    )
    return None if nutrition.is_empty() else nutrition


def _food_allergens(raw: Dict[str, Any]) -> List[str]:
    """Allergen tags look like "en:milk"; strip the language prefix."""
    allergens = []
    for tag in raw.get("allergens_tags") or []:
        if not isinstance(tag, str):
            continue
        name = tag.split(":", 1)[-1].replace("-", " ").strip()
        if name:
            allergens.append(name[:1].upper() + name[1:])
    return dedupe_allergens(allergens)


def _normalize_food(raw: Dict[str, Any], code: Optional[str]) -> Product:
    """Transform an Open Food Facts product to canonical format"""
    return Product(
        code=_resolve_code(raw.get("code"), code),
        name=_clean_text(raw.get("product_name")) or UNKNOWN_PRODUCT_NAME,
        brand=_clean_text(raw.get("brands")),
        image_ref=_clean_text(raw.get("image_url")),
        category_text=_clean_text(raw.get("categories")),
        ingredients_text=_clean_text(raw.get("ingredients_text")),
        category=ProductCategory.FOOD,
        nutrition=_food_nutrition(raw),
        allergens=_food_allergens(raw),
        source=CatalogSource.FOOD.value,
    )


# ============================================================================
# BEAUTY CATALOG (Open Beauty Facts)
# ============================================================================

def _normalize_beauty(raw: Dict[str, Any], code: Optional[str], vocab: Vocabulary) -> Product:
    """Transform an Open Beauty Facts product to canonical format"""
    ingredients_text = _clean_text(raw.get("ingredients_text"))
    category_text = _clean_text(raw.get("categories"))

    # Harmful ingredients are only known when there is ingredient text to scan
    harmful: Optional[List[str]] = None
    if ingredients_text:
        harmful = vocab.find_harmful(ingredients_text)

    is_paraben_free = None
    is_sulfate_free = None
    if harmful is not None:
        is_paraben_free = not any("paraben" in h.lower() for h in harmful)
        is_sulfate_free = not any("sulfate" in h.lower() for h in harmful)

    analysis_tags = raw.get("ingredients_analysis_tags")
    is_vegan = None
    if isinstance(analysis_tags, list):
        is_vegan = "en:vegan" in analysis_tags

    labels = [tag.lower() for tag in raw.get("labels_tags") or [] if isinstance(tag, str)]
    is_cruelty_free = True if any(label in labels for label in vocab.cruelty_free_labels) else None

    allergens_field = raw.get("allergens")
    beauty_allergens = _split_list(allergens_field) if isinstance(allergens_field, str) else None

    if category_text and vocab.is_personal_care(category_text):
        category = ProductCategory.PERSONAL_CARE
    else:
        category = ProductCategory.BEAUTY

    beauty = BeautyData(
        harmful_ingredients=harmful,
        allergens=beauty_allergens,
        is_vegan=is_vegan,
        is_cruelty_free=is_cruelty_free,
        is_paraben_free=is_paraben_free,
        is_sulfate_free=is_sulfate_free,
    )

    return Product(
        code=_resolve_code(raw.get("code"), code),
        name=_clean_text(raw.get("product_name")) or UNKNOWN_PRODUCT_NAME,
        brand=_clean_text(raw.get("brands")),
        image_ref=_clean_text(raw.get("image_url")),
        category_text=category_text,
        ingredients_text=ingredients_text,
        category=category,
        beauty=beauty,
        allergens=dedupe_allergens(beauty_allergens or []),
        source=CatalogSource.BEAUTY.value,
    )


# ============================================================================
# GENERAL CATALOG (Open Products Facts)
# ============================================================================

def _normalize_general(raw: Dict[str, Any], code: Optional[str]) -> Product:
    """Transform an Open Products Facts product to canonical format"""
    return Product(
        code=_resolve_code(raw.get("code"), code),
        name=_clean_text(raw.get("product_name")) or UNKNOWN_PRODUCT_NAME,
        brand=_clean_text(raw.get("brands")),
        image_ref=_clean_text(raw.get("image_url")),
        category_text=_clean_text(raw.get("categories")),
        ingredients_text=_clean_text(raw.get("ingredients_text")),
        category=ProductCategory.GENERAL,
        source=CatalogSource.GENERAL.value,
    )


# ============================================================================
# BRANDED FOODS (USDA FoodData Central)
# ============================================================================

def serving_multiplier(serving_size: Any, serving_size_unit: Optional[str]) -> float:
    """
    Factor converting per-serving values to per-100g.

    Non-mass units fall back to a 100g serving (factor 1). A mass unit with no
    serving size also yields 1.
    """
    unit = (serving_size_unit or "").strip().lower()
    size = _to_float(serving_size)
    grams = size if unit in MASS_UNITS else 100.0
    if not grams or grams <= 0:
        return 1.0
    return 100.0 / grams


def _label_value(label_nutrients: Dict[str, Any], key: str) -> Optional[float]:
    if not isinstance(label_nutrients, dict):
        return None
    entry = label_nutrients.get(key)
    if isinstance(entry, dict):
        return _to_float(entry.get("value"))
    return _to_float(entry)


def _nutrient_value(food_nutrients: List[Dict[str, Any]], nutrient_id: int) -> Optional[float]:
    for nutrient in food_nutrients:
        if not isinstance(nutrient, dict):
            continue
        if _to_int(nutrient.get("nutrientId")) == nutrient_id:
            return _to_float(nutrient.get("value"))
    return None


def _branded_nutrition(raw: Dict[str, Any]) -> Optional[NutritionData]:
    label = raw.get("labelNutrients") or {}
    database = raw.get("foodNutrients") or []

    # Label-reported values win over nutrient-database values, field by field
    def pick(label_key: str, nutrient_id: int) -> Optional[float]:
        value = _label_value(label, label_key)
        if value is None:
            value = _nutrient_value(database, nutrient_id)
        return value

    sugars = pick("sugars", USDA_SUGARS_TOTAL)
    sodium_mg = pick("sodium", USDA_SODIUM)
    saturated_fat = pick("saturatedFat", USDA_SATURATED_FAT)
    protein = pick("protein", USDA_PROTEIN)
    fiber = pick("fiber", USDA_FIBER)
    energy = pick("calories", USDA_ENERGY_KCAL)

    if all(v is None for v in (sugars, sodium_mg, saturated_fat, protein, fiber, energy)):
        return None

    multiplier = serving_multiplier(raw.get("servingSize"), raw.get("servingSizeUnit"))

    def scale(value: Optional[float]) -> Optional[float]:
        return value * multiplier if value is not None else None

    return NutritionData(
        sugars_100g=scale(sugars),
        salt_100g=scale(sodium_mg / 1000.0) if sodium_mg is not None else None,
        saturated_fat_100g=scale(saturated_fat),
        proteins_100g=scale(protein),
        fiber_100g=scale(fiber),
        energy_kcal_100g=scale(energy),
    )


def _normalize_branded(raw: Dict[str, Any], code: Optional[str], vocab: Vocabulary) -> Product:
    """Transform a USDA FoodData Central food to canonical format"""
    ingredients = _clean_text(raw.get("ingredients"))
    fdc_id = raw.get("fdcId")

    return Product(
        code=_resolve_code(raw.get("gtinUpc") or fdc_id, code),
        name=_clean_text(raw.get("description")) or UNKNOWN_PRODUCT_NAME,
        brand=_clean_text(raw.get("brandOwner")) or _clean_text(raw.get("brandName")),
        image_ref=None,  # USDA doesn't provide images
        category_text=_clean_text(raw.get("foodCategory")),
        ingredients_text=ingredients,
        category=ProductCategory.FOOD,
        nutrition=_branded_nutrition(raw),
        # The catalog has no structured allergen field
        allergens=vocab.find_allergens(ingredients) if ingredients else [],
        source=CatalogSource.BRANDED.value,
    )


# ============================================================================
# SEARCH HITS
# ============================================================================

def search_hit_from_record(raw: Dict[str, Any], source: str) -> Optional[SearchHit]:
    """
    Convert a raw search result into a SearchHit.

    Returns None for hits without a usable code.
    """
    try:
        product = normalize_record(raw, source)
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Skipping unusable {source} search hit: {e}")
        return None

    return SearchHit(
        code=product.code,
        name=product.name,
        source=product.source or source,
        brand=product.brand,
        image_ref=product.image_ref,
        category_text=product.category_text,
        nutrition=product.nutrition,
    )


def product_from_search_hit(hit: SearchHit) -> Product:
    """Build a provisional (unscored) FOOD product from a search hit."""
    return Product(
        code=hit.code,
        name=hit.name,
        brand=hit.brand,
        image_ref=hit.image_ref,
        category_text=hit.category_text,
        category=ProductCategory.FOOD,
        nutrition=hit.nutrition,
        source=hit.source,
    )
