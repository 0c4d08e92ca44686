"""
Health / safety score engine.

Pure functions: a Product goes in, a ScoreResult (score + data availability)
comes out. Food and cosmetic products have separate rule sets; everything
else gets a fixed 50/INSUFFICIENT that must be read as "not meaningfully
scored", not as a genuine midpoint.
"""

from typing import Optional

from scanscore.core.schema import (
    BeautyData,
    DataAvailability,
    NutritionData,
    Product,
    ProductCategory,
    ScoreResult,
)

BASE_SCORE = 70
UNSCORED_SCORE = 50

GRADE_SCORES = {"a": 95, "b": 80, "c": 60, "d": 40, "e": 20}

PROCESSING_ADJUSTMENTS = {1: 15, 2: 5, 3: -10, 4: -20}

# (threshold, adjustment) pairs, checked in order with ">"
SUGAR_STEPS = ((25, -20), (15, -12), (10, -8), (5, -4))
SATURATED_FAT_STEPS = ((10, -25), (5, -15), (3, -8), (1.5, -4))
SALT_STEPS = ((2.0, -25), (1.5, -18), (1.0, -10), (0.5, -5))
ENERGY_STEPS = ((500, -15), (400, -10), (300, -5))
PROTEIN_STEPS = ((15, 15), (10, 10), (5, 5))
FIBER_STEPS = ((8, 15), (5, 10), (3, 5))

LOW_ENERGY_KCAL = 100
LOW_ENERGY_BONUS = 5


def _step(value: float, steps) -> int:
    for threshold, adjustment in steps:
        if value > threshold:
            return adjustment
    return 0


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def score_product(product: Product) -> ScoreResult:
    """Compute the score for any product, dispatching on its category."""
    if product.category == ProductCategory.FOOD:
        return score_food(product.nutrition)
    if product.category.is_cosmetic:
        return score_beauty(product.beauty)
    return ScoreResult(UNSCORED_SCORE, DataAvailability.INSUFFICIENT)


def score_food(nutrition: Optional[NutritionData]) -> ScoreResult:
    """
    Score a food product from its nutrition data.

    An official grade replaces the base score; each nutrient then adjusts it
    independently. Up to 8 fields count towards data availability.
    """
    if nutrition is None:
        return ScoreResult(UNSCORED_SCORE, DataAvailability.INSUFFICIENT)

    score = BASE_SCORE
    available = 0

    if nutrition.official_grade is not None:
        available += 1
        score = GRADE_SCORES.get(nutrition.official_grade.lower(), score)

    if nutrition.sugars_100g is not None:
        available += 1
        score += _step(nutrition.sugars_100g, SUGAR_STEPS)

    if nutrition.saturated_fat_100g is not None:
        available += 1
        score += _step(nutrition.saturated_fat_100g, SATURATED_FAT_STEPS)

    if nutrition.salt_100g is not None:
        available += 1
        score += _step(nutrition.salt_100g, SALT_STEPS)

    if nutrition.energy_kcal_100g is not None:
        available += 1
        energy = nutrition.energy_kcal_100g
        if energy < LOW_ENERGY_KCAL:
            score += LOW_ENERGY_BONUS
        else:
            score += _step(energy, ENERGY_STEPS)

    if nutrition.proteins_100g is not None:
        available += 1
        score += _step(nutrition.proteins_100g, PROTEIN_STEPS)

    if nutrition.fiber_100g is not None:
        available += 1
        score += _step(nutrition.fiber_100g, FIBER_STEPS)

    if nutrition.processing_level is not None:
        available += 1
        score += PROCESSING_ADJUSTMENTS.get(nutrition.processing_level, 0)

    if available >= 5:
        availability = DataAvailability.COMPLETE
    elif available >= 3:
        availability = DataAvailability.PARTIAL
    else:
        availability = DataAvailability.INSUFFICIENT

    return ScoreResult(score=_clamp(score), data_availability=availability)


def _count_adjustment(count: int, zero: int, few: int, some: int, many: int) -> int:
    if count == 0:
        return zero
    if count <= 2:
        return few
    if count <= 5:
        return some
    return many


def score_beauty(beauty: Optional[BeautyData]) -> ScoreResult:
    """
    Score a cosmetic product. A flag counts as available whenever it is known,
    whatever its value; only True values earn the bonus.
    """
    if beauty is None:
        return ScoreResult(UNSCORED_SCORE, DataAvailability.INSUFFICIENT)

    score = BASE_SCORE
    available = 0

    if beauty.harmful_ingredients is not None:
        available += 1
        score += _count_adjustment(len(beauty.harmful_ingredients), 15, -10, -20, -30)

    if beauty.is_vegan is not None:
        available += 1
        if beauty.is_vegan:
            score += 8

    if beauty.is_cruelty_free is not None:
        available += 1
        if beauty.is_cruelty_free:
            score += 8

    if beauty.is_paraben_free is not None:
        available += 1
        if beauty.is_paraben_free:
            score += 7

    if beauty.allergens is not None:
        available += 1
        score += _count_adjustment(len(beauty.allergens), 5, -5, -10, -15)

    if available >= 4:
        availability = DataAvailability.COMPLETE
    elif available >= 2:
        availability = DataAvailability.PARTIAL
    else:
        availability = DataAvailability.INSUFFICIENT

    return ScoreResult(score=_clamp(score), data_availability=availability)


def score_label(score: int) -> str:
    """Human-readable band for a score."""
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Average"
    if score >= 20:
        return "Poor"
    return "Very Poor"
