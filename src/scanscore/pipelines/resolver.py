#!/usr/bin/env python3
"""
Barcode Resolver
================

Turns a barcode into one canonical, scored product record:

    cache (fresh hit?) → food catalog → branded foods → merge
                       → beauty catalog → general catalog (fallback cascade)
                       → score + warnings → cache write → caller

Source calls run sequentially so the merge never has to reason about
partial concurrent completion. Every source-level failure is soft: it is
logged and treated as "this source has no answer". When the caller passes a
cancel event, each catalog call runs on a worker thread and is abandoned as
soon as the event fires.

Usage:
    from scanscore.pipelines.resolver import create_resolver

    resolver = create_resolver()
    product = resolver.resolve("3017620422003")
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from scanscore.cache.store import CacheStore, is_fresh_at
from scanscore.core.config import (
    BRANDED_SEARCH_PAGE_SIZE,
    CACHE_DB_PATH,
    CACHE_TTL_DAYS,
    SEARCH_PAGE_SIZE,
)
from scanscore.core.errors import (
    CacheError,
    ResolutionCancelled,
    ResolutionFailed,
    SourceError,
    TransportError,
)
from scanscore.core.normalizer import dedupe_allergens, normalize_record, search_hit_from_record
from scanscore.core.schema import (
    UNKNOWN_PRODUCT_NAME,
    NutritionData,
    Product,
    SearchHit,
    utcnow,
)
from scanscore.scoring.score_engine import score_product
from scanscore.scoring.warning_tags import generate_warnings
from scanscore.sources import (
    BeautyFactsClient,
    BrandedFoodsClient,
    CatalogClient,
    FoodFactsClient,
    ProductsFactsClient,
)

logger = logging.getLogger(__name__)

# How often an in-flight catalog call checks the cancel event
CANCEL_POLL_SECONDS = 0.05


# =============================================================================
# Merge Rules
# =============================================================================

# Fields where the food catalog wins outright (branded value only fills gaps)
FOOD_PRIORITY_FIELDS = ("brand", "image_ref", "category_text", "ingredients_text")

# Nutrition fields merged one by one: food value if present, else branded value
MERGED_NUTRITION_FIELDS = (
    "sugars_100g",
    "salt_100g",
    "saturated_fat_100g",
    "proteins_100g",
    "fiber_100g",
    "energy_kcal_100g",
)

# Only the food catalog carries these; the branded value is never used
FOOD_ONLY_NUTRITION_FIELDS = ("official_grade", "processing_level")


def merge_nutrition(
    food: Optional[NutritionData],
    branded: Optional[NutritionData],
) -> Optional[NutritionData]:
    """Field-by-field nutrition merge with food-catalog priority."""
    if food is None and branded is None:
        return None
    if food is None:
        return replace(branded, **{name: None for name in FOOD_ONLY_NUTRITION_FIELDS})
    if branded is None:
        return food

    merged = {}
    for name in MERGED_NUTRITION_FIELDS:
        food_value = getattr(food, name)
        merged[name] = food_value if food_value is not None else getattr(branded, name)
    for name in FOOD_ONLY_NUTRITION_FIELDS:
        merged[name] = getattr(food, name)
    return NutritionData(**merged)


def merge_products(food: Product, branded: Product) -> Product:
    """
    Merge a food-catalog record with a branded-foods record.

    Priority table:
    - name: food, unless it is the "Unknown Product" placeholder
    - brand, image, category text, ingredients text: food, else branded
    - official grade, processing level: food only
    - nutrition sub-fields: food if present, else branded
    - allergens: union of both, food first, de-duplicated
    """
    name = food.name if food.name != UNKNOWN_PRODUCT_NAME else branded.name

    fields = {}
    for field_name in FOOD_PRIORITY_FIELDS:
        food_value = getattr(food, field_name)
        fields[field_name] = food_value if food_value is not None else getattr(branded, field_name)

    return replace(
        food,
        name=name,
        nutrition=merge_nutrition(food.nutrition, branded.nutrition),
        allergens=dedupe_allergens(list(food.allergens) + list(branded.allergens)),
        source=f"{food.source}+{branded.source}",
        **fields,
    )


# =============================================================================
# Resolver
# =============================================================================

class Resolver:
    """
    Core orchestrator for barcode resolution.

    Collaborators use exactly two entry points: `resolve` and `search`.
    """

    def __init__(
        self,
        food: CatalogClient,
        branded: CatalogClient,
        beauty: CatalogClient,
        general: CatalogClient,
        cache: CacheStore,
        clock: Optional[Callable[[], datetime]] = None,
        ttl_days: int = CACHE_TTL_DAYS,
    ):
        self.food = food
        self.branded = branded
        self.beauty = beauty
        self.general = general
        self.cache = cache
        self.clock = clock or utcnow
        self.ttl = timedelta(days=ttl_days)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, code: str, cancel_event: Optional[threading.Event] = None) -> Product:
        """
        Resolve a barcode to an enriched, cached Product.

        Args:
            code: Scanned barcode
            cancel_event: Set by the caller to abandon the resolution

        Returns:
            Scored Product with warnings

        Raises:
            ResolutionFailed: If no source knows the code
            ResolutionCancelled: If cancel_event was set; nothing is cached
        """
        code = (code or "").strip()
        if not code:
            raise ValueError("Barcode must be a non-empty string")

        logger.info(f"Resolving {code}")

        # Step 1: cache
        cached = self._cached(code)
        if cached is not None:
            logger.info(f"Cache hit for {code} (cached {cached.cached_at.isoformat()})")
            return cached

        source_errors: Dict[str, SourceError] = {}

        # Step 2 + 3: food catalog, then branded foods regardless of the outcome
        self._check_cancelled(code, cancel_event)
        food_product = self._lookup(self.food, code, source_errors, cancel_event)

        self._check_cancelled(code, cancel_event)
        branded_product = self._lookup(self.branded, code, source_errors, cancel_event)

        # Step 4: merge
        if food_product is not None and branded_product is not None:
            logger.info(f"Merging food and branded records for {code}")
            product = merge_products(food_product, branded_product)
        else:
            product = food_product or branded_product

        # Step 5: fallback cascade, first success wins
        if product is None:
            for client in (self.beauty, self.general):
                self._check_cancelled(code, cancel_event)
                product = self._lookup(client, code, source_errors, cancel_event)
                if product is not None:
                    break

        # Step 6: exhausted
        if product is None:
            error = ResolutionFailed(code, source_errors)
            logger.warning(error.message)
            raise error

        # Step 7: enrich, cache, return
        self._check_cancelled(code, cancel_event)
        enriched = self._enrich(product, code)
        self._store(enriched)
        logger.info(
            f"Resolved {code} via {enriched.source}: score {enriched.health_score} "
            f"({enriched.data_availability.value})"
        )
        return enriched

    def _cached(self, code: str) -> Optional[Product]:
        try:
            cached = self.cache.get(code)
        except CacheError as e:
            logger.warning(f"Cache read failed for {code}: {e}")
            return None

        if cached is None:
            return None
        if not self.is_fresh(cached):
            logger.info(f"Cached record for {code} is stale, re-resolving")
            return None
        return cached

    def is_fresh(self, product: Product) -> bool:
        return is_fresh_at(product.cached_at, self.clock(), self.ttl)

    def _lookup(
        self,
        client: CatalogClient,
        code: str,
        source_errors: Dict[str, SourceError],
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[Product]:
        """Query one source; any source error becomes "no answer"."""
        try:
            raw = self._fetch(client, code, cancel_event)
        except SourceError as e:
            source_errors[client.source] = e
            if isinstance(e, TransportError):
                logger.warning(f"{client.source} unavailable for {code}: {e}")
            else:
                logger.info(f"{client.source} has no record for {code}")
            return None

        try:
            product = normalize_record(raw, client.source, code=code)
        except (ValueError, TypeError, AttributeError) as e:
            source_errors[client.source] = TransportError(
                f"{client.source} returned an unusable record: {e}", source=client.source
            )
            logger.warning(f"Could not normalize {client.source} record for {code}: {e}")
            return None

        logger.debug(f"{client.source} answered for {code}: {product.name}")
        return product

    def _fetch(
        self,
        client: CatalogClient,
        code: str,
        cancel_event: Optional[threading.Event],
    ) -> Dict[str, Any]:
        """
        Call `client.fetch_by_code`, giving up as soon as the caller cancels.

        Without a cancel event the call runs inline. Otherwise it runs on a
        worker thread while the event is polled; an abandoned call finishes in
        the background and its result is dropped.
        """
        if cancel_event is None:
            return client.fetch_by_code(code)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{client.source}-fetch")
        try:
            future = executor.submit(client.fetch_by_code, code)
            while True:
                done, _ = wait([future], timeout=CANCEL_POLL_SECONDS)
                if done:
                    return future.result()
                if cancel_event.is_set():
                    future.cancel()
                    logger.info(f"Abandoning in-flight {client.source} call for {code}")
                    raise ResolutionCancelled(code)
        finally:
            executor.shutdown(wait=False)

    def _enrich(self, product: Product, code: str) -> Product:
        now = self.clock()
        scored = score_product(product)
        enriched = replace(
            product,
            code=code,
            health_score=scored.score,
            data_availability=scored.data_availability,
            resolved_at=now,
            cached_at=now,
        )
        return replace(enriched, warnings=generate_warnings(enriched))

    def _store(self, product: Product) -> None:
        """Fire-and-forget cache write; failures never fail the resolution."""
        try:
            self.cache.put(product.code, product)
        except CacheError as e:
            logger.warning(f"Cache write failed for {product.code}: {e}")

    @staticmethod
    def _check_cancelled(code: str, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Resolution of {code} cancelled by caller")
            raise ResolutionCancelled(code)

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query: str,
        page: int = 1,
        page_size: int = SEARCH_PAGE_SIZE,
        include_branded: bool = True,
    ) -> List[SearchHit]:
        """
        Free-text search across the food catalog and (optionally) branded foods.

        Results are de-duplicated by code, food-catalog hits first.

        Raises:
            TransportError: If every queried source failed
        """
        queries: List[Tuple[CatalogClient, int]] = [(self.food, page_size)]
        if include_branded:
            queries.append((self.branded, BRANDED_SEARCH_PAGE_SIZE))

        hits: List[SearchHit] = []
        seen = set()
        failures: List[TransportError] = []

        for client, size in queries:
            try:
                raw_hits = client.search(query, page=page, page_size=size)
            except TransportError as e:
                logger.warning(f"{client.source} search failed for '{query}': {e}")
                failures.append(e)
                continue

            for raw in raw_hits:
                hit = search_hit_from_record(raw, client.source)
                if hit is None or hit.code in seen:
                    continue
                seen.add(hit.code)
                hits.append(hit)

        if len(failures) == len(queries):
            raise TransportError(
                f"Search failed on every catalog: {failures[-1].message}",
                source=failures[-1].source,
            )

        logger.info(f"Search '{query}' returned {len(hits)} hit(s)")
        return hits

    def close(self) -> None:
        """Close every catalog session and the cache connection."""
        for client in (self.food, self.branded, self.beauty, self.general):
            client.close()
        self.cache.close()


# =============================================================================
# Factory
# =============================================================================

def create_resolver(
    db_path: Optional[str] = None,
    usda_api_key: Optional[str] = None,
) -> Resolver:
    """
    Create a Resolver wired to the live catalogs and the on-disk cache.

    Args:
        db_path: Cache database path (defaults to CACHE_DB_PATH)
        usda_api_key: USDA API key (defaults to env var)
    """
    return Resolver(
        food=FoodFactsClient(),
        branded=BrandedFoodsClient(api_key=usda_api_key),
        beauty=BeautyFactsClient(),
        general=ProductsFactsClient(),
        cache=CacheStore(db_path or CACHE_DB_PATH, ttl_days=CACHE_TTL_DAYS),
    )
