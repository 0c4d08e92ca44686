#!/usr/bin/env python3
"""
USDA FoodData Central client (branded foods).

The API has no direct barcode endpoint, so code lookup is a filtered
search over Branded foods that selects the first hit whose gtinUpc
matches the requested code.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from scanscore.core.config import USDA_API_KEY, USDA_API_URL
from scanscore.core.errors import NotFoundError
from scanscore.core.schema import CatalogSource
from scanscore.sources.base import CatalogClient

logger = logging.getLogger(__name__)

SEARCH_DATA_TYPES = ("Branded", "Foundation", "Survey (FNDDS)")
BARCODE_DATA_TYPES = ("Branded",)


def _normalize_gtin(value: Any) -> str:
    """UPC-A and EAN-13 differ by a leading zero; compare without them."""
    return str(value or "").strip().lstrip("0")


class BrandedFoodsClient(CatalogClient):
    """Client for the USDA FoodData Central search API."""

    source = CatalogSource.BRANDED.value

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = USDA_API_URL,
        session: Optional[requests.Session] = None,
        timeout: Optional[Tuple[float, float]] = None,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the USDA client.

        Args:
            api_key: FoodData Central API key (defaults to env var)
            base_url: API base URL (defaults to env var)
            session: Optional requests session
            timeout: (connect, read) timeout in seconds
            user_agent: User-Agent header value
        """
        super().__init__(base_url, session=session, timeout=timeout, user_agent=user_agent)
        self.api_key = api_key or USDA_API_KEY

    def search_foods(
        self,
        query: str,
        data_types: Optional[Sequence[str]] = SEARCH_DATA_TYPES,
        page_size: int = 25,
        page_number: int = 1,
        sort_by: Optional[str] = "dataType.keyword",
        sort_order: Optional[str] = "asc",
    ) -> List[Dict[str, Any]]:
        """
        Search foods by query.

        Args:
            query: Search text (or barcode)
            data_types: dataType filter (Branded, Foundation, Survey (FNDDS), ...)
            page_size: Results per page
            page_number: Page number (1-based)
            sort_by: Sort field
            sort_order: "asc" or "desc"

        Returns:
            List of raw food objects
        """
        params: Dict[str, Any] = {
            "query": query,
            "api_key": self.api_key,
            "pageSize": page_size,
            "pageNumber": page_number,
        }
        if data_types:
            params["dataType"] = ",".join(data_types)
        if sort_by:
            params["sortBy"] = sort_by
        if sort_order:
            params["sortOrder"] = sort_order

        data = self._get("fdc/v1/foods/search", params=params)
        foods = data.get("foods") or []
        logger.debug(f"USDA search '{query}' returned {len(foods)} food(s) of {data.get('totalHits')}")
        return foods

    def fetch_by_code(self, code: str) -> Dict[str, Any]:
        """
        Look up a branded food by barcode.

        Raises:
            NotFoundError: If no Branded hit carries a matching gtinUpc
        """
        foods = self.search_foods(
            query=code,
            data_types=BARCODE_DATA_TYPES,
            page_size=10,
            sort_by=None,
            sort_order=None,
        )

        wanted = _normalize_gtin(code)
        for food in foods:
            if wanted and _normalize_gtin(food.get("gtinUpc")) == wanted:
                return food

        raise NotFoundError(f"USDA has no branded food with GTIN {code}", source=self.source)

    def search(self, query: str, page: int = 1, page_size: int = 20) -> List[Dict[str, Any]]:
        return self.search_foods(query=query, page_size=page_size, page_number=page)
