"""Shared test fixtures for scanscore tests."""

from datetime import datetime, timezone

import pytest

from scanscore.cache.store import CacheStore
from scanscore.core.errors import NotFoundError


NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Raw catalog payloads
# =============================================================================

@pytest.fixture
def off_food_product():
    """Open Food Facts product object for an instant noodle pack."""
    return {
        "code": "8901058851298",
        "product_name": "Maggi 2-Minute Masala Noodles",
        "brands": "Maggi",
        "image_url": "https://images.openfoodfacts.org/maggi.jpg",
        "categories": "Instant noodles, Noodles, Pasta",
        "ingredients_text": "Noodles (wheat flour, palm oil, salt, wheat gluten), masala tastemaker",
        "allergens_tags": ["en:gluten", "en:milk"],
        "nutriscore_grade": "D",
        "nova_group": 4,
        "nutriments": {
            "sugars_100g": 5.8,
            "salt_100g": 2.98,
            "saturated-fat_100g": 7.2,
            "proteins_100g": 9.6,
            "fiber_100g": 2.0,
            "energy-kcal_100g": 400,
        },
    }


@pytest.fixture
def obf_beauty_product():
    """Open Beauty Facts product object for a shampoo."""
    return {
        "code": "4015400257806",
        "product_name": "Pantene Pro-V Classic Clean",
        "brands": "Pantene",
        "categories": "Shampoos, Hair care",
        "ingredients_text": (
            "Water, Sodium Laureth Sulfate, Sodium Citrate, "
            "Cocamidopropyl Betaine, Fragrance, Methylparaben"
        ),
        "ingredients_analysis_tags": ["en:non-vegan", "en:palm-oil-free"],
        "labels_tags": [],
        "allergens": "Fragrance",
    }


@pytest.fixture
def opf_general_product():
    """Open Products Facts product object."""
    return {
        "code": "5901234123457",
        "product_name": "AA Alkaline Batteries",
        "brands": "Duracell",
        "categories": "Batteries",
    }


@pytest.fixture
def usda_branded_food():
    """USDA FoodData Central branded food with per-serving label values."""
    return {
        "fdcId": 2345678,
        "description": "ROASTED SALTED PEANUTS",
        "dataType": "Branded",
        "gtinUpc": "041331024778",
        "brandOwner": "Planters",
        "ingredients": "PEANUTS, SEA SALT, PEANUT OIL",
        "foodCategory": "Nuts & Seeds",
        "servingSize": 30,
        "servingSizeUnit": "g",
        "labelNutrients": {
            "sodium": {"value": 600},
            "protein": {"value": 7.5},
            "calories": {"value": 170},
        },
        "foodNutrients": [
            {"nutrientId": 1093, "value": 999},
            {"nutrientId": 2000, "value": 1.2},
            {"nutrientId": 1258, "value": 2.1},
        ],
    }


# =============================================================================
# Fake collaborators
# =============================================================================

class FakeCatalogClient:
    """
    In-memory catalog client.

    `records` maps a code to a raw product dict or to an exception instance
    that fetch_by_code should raise. Unknown codes raise NotFoundError.
    """

    def __init__(self, source, records=None, search_results=None):
        self.source = source
        self.records = records or {}
        self.search_results = search_results if search_results is not None else []
        self.fetch_calls = []
        self.search_calls = []
        self.closed = False

    def fetch_by_code(self, code):
        self.fetch_calls.append(code)
        record = self.records.get(code)
        if record is None:
            raise NotFoundError(f"{self.source} has no {code}", source=self.source)
        if isinstance(record, Exception):
            raise record
        return dict(record)

    def search(self, query, page=1, page_size=20):
        self.search_calls.append((query, page, page_size))
        if isinstance(self.search_results, Exception):
            raise self.search_results
        return list(self.search_results)

    def close(self):
        self.closed = True


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self.payload = payload
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """Records GET calls and replays a queued response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(200, {})
        self.error = error
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    """Mutable clock: set clock.now to move time."""

    class Clock:
        now = NOW

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def cache_store(tmp_path, clock):
    """Cache store backed by a temporary SQLite file."""
    store = CacheStore(tmp_path / "cache.db", clock=clock)
    yield store
    store.close()


@pytest.fixture
def make_client():
    """Factory for FakeCatalogClient instances."""
    return FakeCatalogClient


@pytest.fixture
def make_session():
    """Factory for FakeSession instances: make_session(status, payload, ...)."""

    def _make(status_code=200, payload=None, invalid_json=False, error=None):
        return FakeSession(FakeResponse(status_code, payload, invalid_json), error=error)

    return _make
