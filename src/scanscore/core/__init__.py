"""Core infrastructure: configuration, schema, errors, normalization."""

from scanscore.core.config import (
    validate_config,
    get_config_summary,
    CACHE_DB_PATH,
    CACHE_TTL_DAYS,
)
from scanscore.core.errors import (
    ScanScoreError,
    TransportError,
    NotFoundError,
    ResolutionFailed,
    ResolutionCancelled,
    CacheError,
    CacheWriteError,
)
from scanscore.core.schema import (
    Product,
    NutritionData,
    BeautyData,
    ProductCategory,
    DataAvailability,
    ScoreResult,
    SearchHit,
    Alternative,
)
from scanscore.core.normalizer import normalize_record

__all__ = [
    "validate_config",
    "get_config_summary",
    "CACHE_DB_PATH",
    "CACHE_TTL_DAYS",
    "ScanScoreError",
    "TransportError",
    "NotFoundError",
    "ResolutionFailed",
    "ResolutionCancelled",
    "CacheError",
    "CacheWriteError",
    "Product",
    "NutritionData",
    "BeautyData",
    "ProductCategory",
    "DataAvailability",
    "ScoreResult",
    "SearchHit",
    "Alternative",
    "normalize_record",
]
