"""
Alternatives Finder

Suggests better-scoring substitutes for a resolved product.

Food products are compared against a catalog search on their main category;
cosmetic products only get a generic "look for..." suggestion built from
their weak attributes. Every returned alternative improves on the current
score (score_difference > 0). Search hits without enough nutrition data
to be scored are never offered.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from scanscore.core.errors import TransportError
from scanscore.core.normalizer import product_from_search_hit
from scanscore.core.schema import Alternative, DataAvailability, Product, ProductCategory
from scanscore.scoring.score_engine import score_product

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 5
MAX_FOOD_REASONS = 2
MAX_BEAUTY_REASONS = 3

FOOD_SUGGESTION_BOOST = 15
BEAUTY_SUGGESTION_BOOST = 20

GENERIC_REASON = "Better overall nutrition"


def main_category(category_text: Optional[str]) -> Optional[str]:
    """First comma segment of the category text, trimmed and lower-cased."""
    if not category_text:
        return None
    first = category_text.split(",")[0].strip().lower()
    return first or None


def improvement_reasons(current: Product, candidate: Product) -> List[str]:
    """Compare sugar, salt and processing level; returns all applicable reasons."""
    reasons: List[str] = []
    ours = current.nutrition
    theirs = candidate.nutrition
    if ours is None or theirs is None:
        return reasons

    for label, ours_value, theirs_value in (
        ("sugar", ours.sugars_100g, theirs.sugars_100g),
        ("salt", ours.salt_100g, theirs.salt_100g),
    ):
        if ours_value and theirs_value is not None and theirs_value < ours_value:
            reduction = int((ours_value - theirs_value) / ours_value * 100)
            reasons.append(f"{reduction}% less {label}")

    if (
        ours.processing_level is not None
        and theirs.processing_level is not None
        and theirs.processing_level < ours.processing_level
    ):
        reasons.append("Less processed")

    return reasons


class AlternativesFinder:
    """Finds alternatives through the resolver's search entry point."""

    def __init__(self, resolver):
        self.resolver = resolver

    def find(self, product: Product) -> List[Alternative]:
        """
        Suggest up to five better alternatives for `product`.

        Args:
            product: A scored Product (as returned by Resolver.resolve)

        Returns:
            Alternatives ordered by score improvement, best first
        """
        if product.category == ProductCategory.FOOD:
            return self._food_alternatives(product)
        if product.category.is_cosmetic:
            return self._beauty_suggestion(product)
        return []

    # ------------------------------------------------------------------
    # Food
    # ------------------------------------------------------------------
    def _food_alternatives(self, current: Product) -> List[Alternative]:
        category = main_category(current.category_text)
        if category is None:
            return self._food_suggestion(current)

        try:
            hits = self.resolver.search(category, include_branded=False)
        except TransportError as e:
            logger.warning(f"Alternatives search for '{category}' failed: {e}")
            return self._food_suggestion(current)

        alternatives: List[Alternative] = []
        for hit in hits:
            if hit.code == current.code:
                continue

            candidate = product_from_search_hit(hit)
            scored = score_product(candidate)
            # Hits without usable nutrition are not comparable
            if scored.data_availability == DataAvailability.INSUFFICIENT:
                continue
            if scored.score <= current.health_score:
                continue

            candidate = replace(
                candidate,
                health_score=scored.score,
                data_availability=scored.data_availability,
            )
            reasons = improvement_reasons(current, candidate) or [GENERIC_REASON]
            alternatives.append(
                Alternative(
                    name=candidate.name,
                    improvement_reason=", ".join(reasons[:MAX_FOOD_REASONS]),
                    score_difference=scored.score - current.health_score,
                    product=candidate,
                )
            )

        if not alternatives:
            logger.info(f"No better '{category}' products found for {current.code}")
            return self._food_suggestion(current)

        alternatives.sort(key=lambda alt: alt.score_difference, reverse=True)
        return alternatives[:MAX_ALTERNATIVES]

    def _food_suggestion(self, current: Product) -> List[Alternative]:
        nutrition = current.nutrition
        if nutrition is None:
            return []

        improvements = []
        if nutrition.sugars_100g is not None and nutrition.sugars_100g > 5.0:
            improvements.append("Lower sugar content")
        if nutrition.salt_100g is not None and nutrition.salt_100g > 1.0:
            improvements.append("Reduced sodium")
        if nutrition.processing_level is not None and nutrition.processing_level >= 3:
            improvements.append("Less processed options")

        return _synthetic(current, "Healthier", improvements, FOOD_SUGGESTION_BOOST)

    # ------------------------------------------------------------------
    # Beauty / personal care
    # ------------------------------------------------------------------
    def _beauty_suggestion(self, current: Product) -> List[Alternative]:
        beauty = current.beauty
        if beauty is None:
            return []

        improvements = []
        if beauty.is_paraben_free is False:
            improvements.append("Paraben-free")
        if beauty.is_sulfate_free is False:
            improvements.append("Sulfate-free")
        if beauty.is_vegan is False:
            improvements.append("Vegan")
        if beauty.harmful_ingredients:
            improvements.append("Fewer harmful ingredients")

        return _synthetic(
            current, "Natural", improvements[:MAX_BEAUTY_REASONS], BEAUTY_SUGGESTION_BOOST
        )


def _synthetic(current: Product, prefix: str, improvements: List[str], boost: int) -> List[Alternative]:
    """Generic suggestion; never points at a real product."""
    if not improvements:
        return []

    difference = min(100, current.health_score + boost) - current.health_score
    if difference <= 0:
        return []

    label = (current.category_text or "").split(",")[0].strip() or "Alternative"
    return [
        Alternative(
            name=f"{prefix} {label}",
            improvement_reason=f"Look for products with: {', '.join(improvements)}",
            score_difference=difference,
            is_synthetic=True,
        )
    ]
