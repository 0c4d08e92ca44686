"""Tests for the barcode resolver."""

import threading
import time
from datetime import timedelta

import pytest

from scanscore.core.errors import (
    CacheReadError,
    CacheWriteError,
    NotFoundError,
    ResolutionCancelled,
    ResolutionFailed,
    TransportError,
)
from scanscore.core.normalizer import normalize_record
from scanscore.core.schema import DataAvailability, NutritionData, ProductCategory
from scanscore.pipelines.resolver import Resolver, merge_nutrition, merge_products

FOOD_CODE = "8901058851298"
BRANDED_CODE = "041331024778"


@pytest.fixture
def build_resolver(make_client, cache_store, clock):
    """Build a resolver from per-source record maps."""

    def _build(food=None, branded=None, beauty=None, general=None, cache=None, search=None):
        clients = {
            "food": make_client("food", food, (search or {}).get("food")),
            "branded": make_client("branded", branded, (search or {}).get("branded")),
            "beauty": make_client("beauty", beauty),
            "general": make_client("general", general),
        }
        resolver = Resolver(cache=cache or cache_store, clock=clock, **clients)
        return resolver, clients

    return _build


def _unavailable(source):
    return TransportError(f"{source} timed out", source=source)


# =============================================================================
# Merge
# =============================================================================

def test_merge_prefers_food_catalog(off_food_product, usda_branded_food):
    food = normalize_record(off_food_product, source="food")
    branded = normalize_record(usda_branded_food, source="branded")

    merged = merge_products(food, branded)

    assert merged.name == food.name
    assert merged.brand == "Maggi"
    assert merged.image_ref == food.image_ref
    assert merged.nutrition.salt_100g == 2.98
    assert merged.nutrition.official_grade == "d"
    assert merged.allergens == ["Gluten", "Milk", "Peanut"]
    assert merged.source == "food+branded"


def test_merge_fills_gaps_from_branded(off_food_product, usda_branded_food):
    del off_food_product["brands"]
    off_food_product["product_name"] = ""
    off_food_product["nutriments"] = {"sugars_100g": 5.8}
    food = normalize_record(off_food_product, source="food")
    branded = normalize_record(usda_branded_food, source="branded")

    merged = merge_products(food, branded)

    assert merged.name == "ROASTED SALTED PEANUTS"
    assert merged.brand == "Planters"
    assert merged.nutrition.sugars_100g == 5.8
    assert merged.nutrition.salt_100g == pytest.approx(2.0)
    assert merged.nutrition.processing_level == 4


def test_merge_nutrition_never_takes_branded_grade():
    branded = NutritionData(salt_100g=1.0, official_grade="a", processing_level=1)

    merged = merge_nutrition(None, branded)

    assert merged.salt_100g == 1.0
    assert merged.official_grade is None
    assert merged.processing_level is None
    assert merge_nutrition(None, None) is None


# =============================================================================
# Resolution
# =============================================================================

def test_resolve_food_product(build_resolver, off_food_product, cache_store, clock):
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})

    product = resolver.resolve(FOOD_CODE)

    assert product.health_score == 0
    assert product.data_availability == DataAvailability.COMPLETE
    assert product.warnings == ["high salt", "high saturated fat", "ultra-processed"]
    assert product.resolved_at == clock.now
    assert clients["branded"].fetch_calls == [FOOD_CODE]
    assert clients["beauty"].fetch_calls == []
    assert cache_store.get(FOOD_CODE) == product


def test_resolve_merges_food_and_branded(build_resolver, off_food_product, usda_branded_food):
    resolver, _ = build_resolver(
        food={FOOD_CODE: off_food_product},
        branded={FOOD_CODE: usda_branded_food},
    )

    product = resolver.resolve(FOOD_CODE)

    assert product.code == FOOD_CODE
    assert product.source == "food+branded"
    assert "Peanut" in product.allergens


def test_resolve_branded_only(build_resolver, usda_branded_food):
    """600mg sodium per 30g serving resolves to 2.0g salt per 100g."""
    resolver, _ = build_resolver(branded={BRANDED_CODE: usda_branded_food})

    product = resolver.resolve(BRANDED_CODE)

    assert product.category == ProductCategory.FOOD
    assert product.nutrition.salt_100g == pytest.approx(2.0)
    assert product.source == "branded"


def test_resolve_falls_back_to_beauty(build_resolver, obf_beauty_product):
    code = obf_beauty_product["code"]
    resolver, clients = build_resolver(beauty={code: obf_beauty_product})

    product = resolver.resolve(code)

    assert product.category == ProductCategory.PERSONAL_CARE
    assert product.health_score == 45
    assert clients["general"].fetch_calls == []


def test_resolve_falls_back_to_general(build_resolver, opf_general_product):
    code = opf_general_product["code"]
    resolver, _ = build_resolver(general={code: opf_general_product})

    product = resolver.resolve(code)

    assert product.category == ProductCategory.GENERAL
    assert product.health_score == 50
    assert product.data_availability == DataAvailability.INSUFFICIENT
    assert product.warnings == []


def test_transport_error_is_soft(build_resolver, obf_beauty_product):
    """A food catalog outage should not stop the cascade."""
    code = obf_beauty_product["code"]
    resolver, _ = build_resolver(
        food={code: _unavailable("food")},
        beauty={code: obf_beauty_product},
    )

    assert resolver.resolve(code).source == "beauty"


def test_unknown_code_is_not_found(build_resolver, cache_store):
    resolver, clients = build_resolver()

    with pytest.raises(ResolutionFailed, match="Product not found: 123") as exc_info:
        resolver.resolve("123")

    assert exc_info.value.not_found
    assert set(exc_info.value.source_errors) == {"food", "branded", "beauty", "general"}
    assert cache_store.get("123") is None


def test_all_sources_unavailable(build_resolver):
    """Network failure everywhere is reported differently from not found."""
    code = "123"
    resolver, _ = build_resolver(
        food={code: _unavailable("food")},
        branded={code: _unavailable("branded")},
        beauty={code: _unavailable("beauty")},
        general={code: _unavailable("general")},
    )

    with pytest.raises(ResolutionFailed, match="unavailable") as exc_info:
        resolver.resolve(code)

    assert not exc_info.value.not_found


def test_malformed_record_is_soft(build_resolver, usda_branded_food, obf_beauty_product):
    """A record with the wrong field shapes counts as an unusable answer."""
    code = obf_beauty_product["code"]
    usda_branded_food["foodNutrients"] = 5
    resolver, _ = build_resolver(
        branded={code: usda_branded_food},
        beauty={code: obf_beauty_product},
    )

    product = resolver.resolve(code)

    assert product.source == "beauty"


def test_malformed_record_everywhere_fails_resolution(build_resolver, usda_branded_food):
    usda_branded_food["foodNutrients"] = 5
    resolver, _ = build_resolver(branded={BRANDED_CODE: usda_branded_food})

    with pytest.raises(ResolutionFailed) as exc_info:
        resolver.resolve(BRANDED_CODE)

    assert isinstance(exc_info.value.source_errors["branded"], TransportError)


def test_null_label_tags_still_resolve(build_resolver, obf_beauty_product):
    code = obf_beauty_product["code"]
    obf_beauty_product["labels_tags"] = [None, "en:cruelty-free"]
    resolver, _ = build_resolver(beauty={code: obf_beauty_product})

    product = resolver.resolve(code)

    assert product.source == "beauty"
    assert product.beauty.is_cruelty_free is True


def test_empty_code_is_rejected(build_resolver):
    resolver, _ = build_resolver()
    with pytest.raises(ValueError, match="non-empty"):
        resolver.resolve("  ")


# =============================================================================
# Cache behavior
# =============================================================================

def test_fresh_cache_hit_skips_network(build_resolver, off_food_product, clock):
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})
    first = resolver.resolve(FOOD_CODE)

    clock.now = clock.now + timedelta(days=30)
    second = resolver.resolve(FOOD_CODE)

    assert second == first
    assert clients["food"].fetch_calls == [FOOD_CODE]


def test_stale_cache_is_re_resolved(build_resolver, off_food_product, cache_store, clock):
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})
    resolver.resolve(FOOD_CODE)

    clock.now = clock.now + timedelta(days=30, seconds=1)
    refreshed = resolver.resolve(FOOD_CODE)

    assert clients["food"].fetch_calls == [FOOD_CODE, FOOD_CODE]
    assert refreshed.cached_at == clock.now
    assert cache_store.get(FOOD_CODE).cached_at == clock.now


def test_resolver_and_cache_agree_on_freshness(build_resolver, off_food_product, cache_store, clock):
    resolver, _ = build_resolver(food={FOOD_CODE: off_food_product})
    product = resolver.resolve(FOOD_CODE)

    for age in (timedelta(days=30), timedelta(days=30, microseconds=1)):
        clock.now = product.cached_at + age
        assert resolver.is_fresh(product) == cache_store.is_fresh(product)

    assert not resolver.is_fresh(product)


def test_stale_cache_kept_when_refresh_fails(build_resolver, off_food_product, cache_store, clock):
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})
    original = resolver.resolve(FOOD_CODE)

    clock.now = clock.now + timedelta(days=31)
    clients["food"].records[FOOD_CODE] = _unavailable("food")

    with pytest.raises(ResolutionFailed):
        resolver.resolve(FOOD_CODE)

    assert cache_store.get(FOOD_CODE) == original


class BrokenCache:
    def get(self, code):
        raise CacheReadError("disk unreadable")

    def put(self, code, product):
        raise CacheWriteError("disk full")


def test_cache_failures_are_swallowed(build_resolver, off_food_product):
    resolver, _ = build_resolver(food={FOOD_CODE: off_food_product}, cache=BrokenCache())

    product = resolver.resolve(FOOD_CODE)

    assert product.code == FOOD_CODE
    assert product.health_score == 0


# =============================================================================
# Cancellation
# =============================================================================

def test_cancelled_resolution_writes_nothing(build_resolver, off_food_product, cache_store):
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ResolutionCancelled):
        resolver.resolve(FOOD_CODE, cancel_event=cancel)

    assert clients["food"].fetch_calls == []
    assert cache_store.get(FOOD_CODE) is None


def test_cancel_between_sources(build_resolver, off_food_product, cache_store):
    """Cancelling after the first source answered still skips the cache write."""
    resolver, clients = build_resolver(food={FOOD_CODE: off_food_product})
    cancel = threading.Event()

    original_fetch = clients["food"].fetch_by_code

    def fetch_then_cancel(code):
        record = original_fetch(code)
        cancel.set()
        return record

    clients["food"].fetch_by_code = fetch_then_cancel

    with pytest.raises(ResolutionCancelled, match=FOOD_CODE):
        resolver.resolve(FOOD_CODE, cancel_event=cancel)

    assert clients["branded"].fetch_calls == []
    assert cache_store.get(FOOD_CODE) is None


def test_cancel_abandons_in_flight_call(build_resolver, cache_store):
    """A slow catalog call is given up on as soon as the caller cancels."""
    resolver, clients = build_resolver()
    cancel = threading.Event()
    started = threading.Event()
    release = threading.Event()

    def slow_fetch(code):
        started.set()
        release.wait(5)
        raise NotFoundError(f"food has no {code}", source="food")

    def cancel_once_started():
        started.wait(5)
        cancel.set()

    clients["food"].fetch_by_code = slow_fetch
    canceller = threading.Thread(target=cancel_once_started)
    canceller.start()

    began = time.monotonic()
    try:
        with pytest.raises(ResolutionCancelled):
            resolver.resolve(FOOD_CODE, cancel_event=cancel)
        elapsed = time.monotonic() - began
    finally:
        release.set()
        canceller.join()

    assert elapsed < 2
    assert clients["branded"].fetch_calls == []
    assert cache_store.get(FOOD_CODE) is None


def test_uncancelled_event_still_resolves(build_resolver, off_food_product):
    resolver, _ = build_resolver(food={FOOD_CODE: off_food_product})

    product = resolver.resolve(FOOD_CODE, cancel_event=threading.Event())

    assert product.health_score == 0


# =============================================================================
# Search
# =============================================================================

def test_search_dedupes_food_first(build_resolver, off_food_product, usda_branded_food):
    duplicate = dict(usda_branded_food, gtinUpc=FOOD_CODE)
    resolver, clients = build_resolver(
        search={"food": [off_food_product], "branded": [duplicate, usda_branded_food]},
    )

    hits = resolver.search("noodles")

    assert [(hit.code, hit.source) for hit in hits] == [
        (FOOD_CODE, "food"),
        (BRANDED_CODE, "branded"),
    ]
    assert clients["food"].search_calls == [("noodles", 1, 20)]
    assert clients["branded"].search_calls == [("noodles", 1, 10)]


def test_search_without_branded(build_resolver, off_food_product):
    resolver, clients = build_resolver(search={"food": [off_food_product]})

    hits = resolver.search("noodles", include_branded=False)

    assert len(hits) == 1
    assert clients["branded"].search_calls == []


def test_search_survives_one_failure(build_resolver, usda_branded_food):
    resolver, _ = build_resolver(
        search={"food": _unavailable("food"), "branded": [usda_branded_food]},
    )

    hits = resolver.search("peanuts")

    assert [hit.source for hit in hits] == ["branded"]


def test_search_fails_when_every_source_fails(build_resolver):
    resolver, _ = build_resolver(
        search={"food": _unavailable("food"), "branded": _unavailable("branded")},
    )

    with pytest.raises(TransportError, match="every catalog"):
        resolver.search("peanuts")


def test_search_empty_results(build_resolver):
    resolver, _ = build_resolver()
    assert resolver.search("nothing at all") == []


def test_resolved_product_keeps_requested_code(build_resolver, usda_branded_food):
    """Leading-zero variants resolve under the scanned code."""
    scanned = "0" + BRANDED_CODE
    resolver, _ = build_resolver(branded={scanned: usda_branded_food})

    product = resolver.resolve(scanned)

    assert product.code == scanned


# =============================================================================
# Lifecycle
# =============================================================================

def test_close_releases_clients_and_cache(build_resolver, cache_store):
    resolver, clients = build_resolver()

    resolver.close()

    assert all(client.closed for client in clients.values())
    with pytest.raises(CacheReadError):
        cache_store.get(FOOD_CODE)
