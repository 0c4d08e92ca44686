#!/usr/bin/env python3
"""
Open Food Facts family clients.

Open Food Facts, Open Beauty Facts and Open Products Facts share one API:
- GET api/v2/product/{code}          → {"status": 1, "product": {...}}
- GET cgi/search.pl?search_terms=... → {"count": N, "products": [...]}
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from scanscore.core.config import BEAUTY_API_URL, FOOD_API_URL, PRODUCTS_API_URL
from scanscore.core.errors import NotFoundError
from scanscore.core.schema import CatalogSource
from scanscore.sources.base import CatalogClient

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    "code,product_name,brands,image_url,categories,"
    "nutriscore_grade,nova_group,nutriments"
)


class OpenFactsClient(CatalogClient):
    """Client for any Open*Facts catalog."""

    search_fields: str = SEARCH_FIELDS

    def __init__(
        self,
        base_url: str,
        source: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[Tuple[float, float]] = None,
        user_agent: Optional[str] = None,
    ):
        super().__init__(base_url, session=session, timeout=timeout, user_agent=user_agent)
        self.source = source

    def fetch_by_code(self, code: str) -> Dict[str, Any]:
        """
        Get a single product by barcode.

        Args:
            code: Product barcode

        Returns:
            Raw product object

        Raises:
            NotFoundError: If status != 1 or the product object is missing
        """
        data = self._get(f"api/v2/product/{code}")

        product = data.get("product")
        if data.get("status") != 1 or not product:
            raise NotFoundError(
                f"{self.source} has no product {code}: {data.get('status_verbose', 'not found')}",
                source=self.source,
            )

        product.setdefault("code", code)
        return product

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        """
        Free-text product search.

        Args:
            query: Search terms
            page: Page number (1-based)
            page_size: Results per page

        Returns:
            List of raw product objects
        """
        params = {
            "search_terms": query,
            "json": 1,
            "page": page,
            "page_size": page_size,
            "fields": self.search_fields,
        }
        data = self._get("cgi/search.pl", params=params)
        products = data.get("products") or []
        logger.debug(f"{self.source} search '{query}' returned {len(products)} product(s)")
        return products


class FoodFactsClient(OpenFactsClient):
    """Open Food Facts - the primary food catalog."""

    def __init__(self, base_url: str = FOOD_API_URL, **kwargs):
        super().__init__(base_url, source=CatalogSource.FOOD.value, **kwargs)


class BeautyFactsClient(OpenFactsClient):
    """Open Beauty Facts - cosmetics and personal care."""

    search_fields = (
        "code,product_name,brands,image_url,categories,ingredients_text,"
        "ingredients_analysis_tags,labels_tags,allergens"
    )

    def __init__(self, base_url: str = BEAUTY_API_URL, **kwargs):
        super().__init__(base_url, source=CatalogSource.BEAUTY.value, **kwargs)


class ProductsFactsClient(OpenFactsClient):
    """Open Products Facts - general, non-food products."""

    search_fields = "code,product_name,brands,image_url,categories"

    def __init__(self, base_url: str = PRODUCTS_API_URL, **kwargs):
        super().__init__(base_url, source=CatalogSource.GENERAL.value, **kwargs)
