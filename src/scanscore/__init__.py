"""
scanscore - Barcode Product Resolver and Health Scorer

Resolves a scanned barcode against several open product catalogs, merges
the answers into one canonical record, caches it locally and attaches a
0-100 health/safety score, warning tags and better alternatives.
"""

__version__ = "1.0.0"

from scanscore.pipelines.resolver import Resolver, create_resolver
from scanscore.scoring.alternatives import AlternativesFinder
from scanscore.core.config import validate_config, get_config_summary
from scanscore.core.schema import Product, Alternative, ProductCategory
from scanscore.core.errors import ResolutionFailed, ResolutionCancelled

__all__ = [
    "Resolver",
    "create_resolver",
    "AlternativesFinder",
    "validate_config",
    "get_config_summary",
    "Product",
    "Alternative",
    "ProductCategory",
    "ResolutionFailed",
    "ResolutionCancelled",
]
