"""Catalog clients: one per external product database."""

from scanscore.sources.base import CatalogClient
from scanscore.sources.open_facts import (
    BeautyFactsClient,
    FoodFactsClient,
    OpenFactsClient,
    ProductsFactsClient,
)
from scanscore.sources.usda import BrandedFoodsClient

__all__ = [
    "CatalogClient",
    "OpenFactsClient",
    "FoodFactsClient",
    "BeautyFactsClient",
    "ProductsFactsClient",
    "BrandedFoodsClient",
]
