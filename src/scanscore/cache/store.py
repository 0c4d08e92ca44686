"""
SQLite-backed cache of resolved products.

One row per barcode (last write wins). `get` returns whatever is stored;
freshness is decided by the caller through `is_fresh`, so a UI can still
show a stale record while flagging it as outdated.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from scanscore.core.config import CACHE_DB_PATH, CACHE_TTL_DAYS
from scanscore.core.errors import CacheReadError, CacheWriteError
from scanscore.core.normalizer import dedupe_allergens
from scanscore.core.schema import (
    BeautyData,
    DataAvailability,
    NutritionData,
    Product,
    ProductCategory,
    utcnow,
)

logger = logging.getLogger(__name__)

LIST_DELIMITER = ","
WARNING_DELIMITER = "|"

CACHE_COLUMNS = (
    "code",
    "name",
    "brand",
    "image_ref",
    "category_text",
    "ingredients_text",
    "category",
    "sugars_100g",
    "salt_100g",
    "saturated_fat_100g",
    "proteins_100g",
    "fiber_100g",
    "energy_kcal_100g",
    "official_grade",
    "official_processing_level",
    "harmful_ingredients",
    "allergens",
    "is_vegan",
    "is_cruelty_free",
    "is_paraben_free",
    "is_sulfate_free",
    "health_score",
    "data_availability",
    "warnings",
    "source",
    "resolved_at",
    "cached_at",
)

CREATE_PRODUCTS_TABLE = """
CREATE TABLE IF NOT EXISTS products (
    code TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    brand TEXT,
    image_ref TEXT,
    category_text TEXT,
    ingredients_text TEXT,
    category TEXT NOT NULL,
    sugars_100g REAL,
    salt_100g REAL,
    saturated_fat_100g REAL,
    proteins_100g REAL,
    fiber_100g REAL,
    energy_kcal_100g REAL,
    official_grade TEXT,
    official_processing_level INTEGER,
    harmful_ingredients TEXT,
    allergens TEXT,
    is_vegan INTEGER,
    is_cruelty_free INTEGER,
    is_paraben_free INTEGER,
    is_sulfate_free INTEGER,
    health_score INTEGER NOT NULL DEFAULT 0,
    data_availability TEXT NOT NULL,
    warnings TEXT NOT NULL DEFAULT '',
    source TEXT,
    resolved_at TEXT NOT NULL,
    cached_at TEXT NOT NULL
)
"""


# ============================================================================
# ROW MAPPING
# ============================================================================

def format_timestamp(value: datetime) -> str:
    """ISO 8601 in UTC with fixed microsecond precision (sorts lexicographically)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _join(values: Optional[List[str]], delimiter: str = LIST_DELIMITER) -> Optional[str]:
    return delimiter.join(values) if values is not None else None


def _split(value: Optional[str], delimiter: str = LIST_DELIMITER) -> Optional[List[str]]:
    if value is None:
        return None
    return [part for part in value.split(delimiter) if part.strip()]


def is_fresh_at(cached_at: Optional[datetime], now: datetime, ttl: timedelta) -> bool:
    """
    Freshness rule shared by the cache and the resolver.

    A record is fresh while it is at most `ttl` old; a record exactly `ttl`
    old still counts as fresh. Records that were never cached are stale.
    """
    if cached_at is None:
        return False
    return now - cached_at <= ttl


def _bool_to_row(value: Optional[bool]) -> Optional[int]:
    return None if value is None else int(value)


def _bool_from_row(value: Optional[int]) -> Optional[bool]:
    return None if value is None else bool(value)


def to_cache_row(product: Product) -> Dict[str, Any]:
    """Flatten a Product into the persisted column layout."""
    nutrition = product.nutrition or NutritionData()
    beauty = product.beauty

    if beauty is not None:
        allergens = _join(beauty.allergens)
    else:
        allergens = _join(product.allergens) if product.allergens else None

    cached_at = product.cached_at or product.resolved_at

    return {
        "code": product.code,
        "name": product.name,
        "brand": product.brand,
        "image_ref": product.image_ref,
        "category_text": product.category_text,
        "ingredients_text": product.ingredients_text,
        "category": product.category.value,
        "sugars_100g": nutrition.sugars_100g,
        "salt_100g": nutrition.salt_100g,
        "saturated_fat_100g": nutrition.saturated_fat_100g,
        "proteins_100g": nutrition.proteins_100g,
        "fiber_100g": nutrition.fiber_100g,
        "energy_kcal_100g": nutrition.energy_kcal_100g,
        "official_grade": nutrition.official_grade,
        "official_processing_level": nutrition.processing_level,
        "harmful_ingredients": _join(beauty.harmful_ingredients) if beauty else None,
        "allergens": allergens,
        "is_vegan": _bool_to_row(beauty.is_vegan) if beauty else None,
        "is_cruelty_free": _bool_to_row(beauty.is_cruelty_free) if beauty else None,
        "is_paraben_free": _bool_to_row(beauty.is_paraben_free) if beauty else None,
        "is_sulfate_free": _bool_to_row(beauty.is_sulfate_free) if beauty else None,
        "health_score": product.health_score,
        "data_availability": product.data_availability.value,
        "warnings": WARNING_DELIMITER.join(product.warnings),
        "source": product.source,
        "resolved_at": format_timestamp(product.resolved_at),
        "cached_at": format_timestamp(cached_at),
    }


def from_cache_row(row: Mapping[str, Any]) -> Product:
    """Rebuild a Product from a persisted row."""
    category = ProductCategory(row["category"])

    nutrition = None
    if category == ProductCategory.FOOD:
        nutrition = NutritionData(
            sugars_100g=row["sugars_100g"],
            salt_100g=row["salt_100g"],
            saturated_fat_100g=row["saturated_fat_100g"],
            proteins_100g=row["proteins_100g"],
            fiber_100g=row["fiber_100g"],
            energy_kcal_100g=row["energy_kcal_100g"],
            official_grade=row["official_grade"],
            processing_level=row["official_processing_level"],
        )
        if nutrition.is_empty():
            nutrition = None

    beauty = None
    allergens = dedupe_allergens(_split(row["allergens"]) or [])
    if category.is_cosmetic:
        beauty = BeautyData(
            harmful_ingredients=_split(row["harmful_ingredients"]),
            allergens=_split(row["allergens"]),
            is_vegan=_bool_from_row(row["is_vegan"]),
            is_cruelty_free=_bool_from_row(row["is_cruelty_free"]),
            is_paraben_free=_bool_from_row(row["is_paraben_free"]),
            is_sulfate_free=_bool_from_row(row["is_sulfate_free"]),
        )
        if beauty.is_empty():
            beauty = None

    return Product(
        code=row["code"],
        name=row["name"],
        brand=row["brand"],
        image_ref=row["image_ref"],
        category_text=row["category_text"],
        ingredients_text=row["ingredients_text"],
        category=category,
        nutrition=nutrition,
        beauty=beauty,
        allergens=allergens,
        health_score=row["health_score"],
        data_availability=DataAvailability(row["data_availability"]),
        warnings=_split(row["warnings"], WARNING_DELIMITER) or [],
        source=row["source"],
        resolved_at=parse_timestamp(row["resolved_at"]),
        cached_at=parse_timestamp(row["cached_at"]),
    )


# ============================================================================
# STORE
# ============================================================================

class CacheStore:
    """
    Persistent, TTL-aware product cache.

    Reads never touch the network and never delete rows; expiry only happens
    through `evict_older_than` / `evict_expired`.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = CACHE_DB_PATH,
        ttl_days: int = CACHE_TTL_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = str(db_path)
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock or utcnow
        self._lock = threading.Lock()

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        with self._lock, self.conn:
            self.conn.execute(CREATE_PRODUCTS_TABLE)
            self.conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_products_cached_at ON products (cached_at)"
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, code: str) -> Optional[Product]:
        """Return the cached record for `code` (fresh or stale), or None on miss."""
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT * FROM products WHERE code = ?", (code,)
                ).fetchone()
        except sqlite3.Error as e:
            raise CacheReadError(f"Failed to read {code} from cache: {e}")

        if row is None:
            return None
        return from_cache_row(dict(row))

    def put(self, code: str, product: Product) -> None:
        """Insert or replace the record for `code` in a single transaction."""
        row = to_cache_row(product)
        row["code"] = code
        if product.cached_at is None:
            row["cached_at"] = format_timestamp(self.clock())

        placeholders = ", ".join("?" for _ in CACHE_COLUMNS)
        sql = f"INSERT OR REPLACE INTO products ({', '.join(CACHE_COLUMNS)}) VALUES ({placeholders})"

        try:
            with self._lock, self.conn:
                self.conn.execute(sql, [row[column] for column in CACHE_COLUMNS])
        except sqlite3.Error as e:
            raise CacheWriteError(f"Failed to cache {code}: {e}")

        logger.debug(f"Cached {code} at {row['cached_at']}")

    def evict_older_than(self, cutoff: datetime) -> int:
        """Delete every entry cached strictly before `cutoff`. Returns the row count."""
        try:
            with self._lock, self.conn:
                cursor = self.conn.execute(
                    "DELETE FROM products WHERE cached_at < ?", (format_timestamp(cutoff),)
                )
        except sqlite3.Error as e:
            raise CacheWriteError(f"Failed to evict cache entries: {e}")

        if cursor.rowcount:
            logger.info(f"Evicted {cursor.rowcount} cache entries older than {cutoff.isoformat()}")
        return cursor.rowcount

    def evict_expired(self) -> int:
        return self.evict_older_than(self.clock() - self.ttl)

    def is_fresh(self, product: Product, now: Optional[datetime] = None) -> bool:
        """True while the record is at most `ttl` old (exactly ttl still counts)."""
        return is_fresh_at(product.cached_at, now or self.clock(), self.ttl)

    def list_products(self, category: Optional[ProductCategory] = None) -> List[Product]:
        """Scan history, most recently resolved first."""
        sql = "SELECT * FROM products"
        params: tuple = ()
        if category is not None:
            sql += " WHERE category = ?"
            params = (category.value,)
        sql += " ORDER BY resolved_at DESC"

        try:
            with self._lock:
                rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise CacheReadError(f"Failed to list cached products: {e}")

        return [from_cache_row(dict(row)) for row in rows]

    def clear(self) -> None:
        with self._lock, self.conn:
            self.conn.execute("DELETE FROM products")

    def close(self) -> None:
        self.conn.close()
