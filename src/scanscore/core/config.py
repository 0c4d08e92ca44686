#!/usr/bin/env python3
"""
Configuration for the scanscore barcode resolver.
Handles environment variable loading and validation.
"""

import os
import sys
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


# =============================================================================
# Catalog Endpoints
# =============================================================================

FOOD_API_URL: str = os.getenv("FOOD_API_URL", "https://world.openfoodfacts.org/")
BEAUTY_API_URL: str = os.getenv("BEAUTY_API_URL", "https://world.openbeautyfacts.org/")
PRODUCTS_API_URL: str = os.getenv("PRODUCTS_API_URL", "https://world.openproductsfacts.org/")

# USDA FoodData Central (branded foods)
# Get your own key from: https://fdc.nal.usda.gov/api-key-signup.html
USDA_API_URL: str = os.getenv("USDA_API_URL", "https://api.nal.usda.gov/")
USDA_API_KEY: str = os.getenv("USDA_API_KEY", "DEMO_KEY")


# =============================================================================
# HTTP Configuration
# =============================================================================

CONNECT_TIMEOUT: float = float(os.getenv("CONNECT_TIMEOUT", "30"))
READ_TIMEOUT: float = float(os.getenv("READ_TIMEOUT", "30"))

USER_AGENT: str = os.getenv("USER_AGENT", "scanscore/1.0 (barcode resolver)")

# Page sizes used by Resolver.search
SEARCH_PAGE_SIZE: int = int(os.getenv("SEARCH_PAGE_SIZE", "20"))
BRANDED_SEARCH_PAGE_SIZE: int = int(os.getenv("BRANDED_SEARCH_PAGE_SIZE", "10"))


# =============================================================================
# Cache Configuration
# =============================================================================

CACHE_DB_PATH: str = os.getenv("CACHE_DB_PATH", "data/scanscore.db")
CACHE_TTL_DAYS: int = int(os.getenv("CACHE_TTL_DAYS", "30"))

# Optional override for the vocabulary tables (harmful ingredients, allergens)
VOCABULARY_PATH: Optional[str] = os.getenv("VOCABULARY_PATH")


# =============================================================================
# Validation
# =============================================================================

def validate_config() -> None:
    """
    Validate that configuration values are usable.
    Raises SystemExit if any values are invalid.
    """
    errors = []

    if CONNECT_TIMEOUT <= 0 or READ_TIMEOUT <= 0:
        errors.append("CONNECT_TIMEOUT and READ_TIMEOUT must be positive")

    if CACHE_TTL_DAYS <= 0:
        errors.append("CACHE_TTL_DAYS must be a positive number of days")

    if SEARCH_PAGE_SIZE <= 0 or BRANDED_SEARCH_PAGE_SIZE <= 0:
        errors.append("SEARCH_PAGE_SIZE and BRANDED_SEARCH_PAGE_SIZE must be positive")

    if not USDA_API_KEY:
        errors.append("USDA_API_KEY must not be empty (use DEMO_KEY for light testing)")

    if VOCABULARY_PATH and not os.path.isfile(VOCABULARY_PATH):
        errors.append(f"VOCABULARY_PATH does not exist: {VOCABULARY_PATH}")

    if errors:
        print("Configuration Error(s):", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        print("\nPlease fix the environment variables and try again.", file=sys.stderr)
        sys.exit(1)


def _mask(value: Optional[str]) -> str:
    if not value:
        return "Not configured"
    if value == "DEMO_KEY":
        return "DEMO_KEY (rate limited)"
    return f"{value[:4]}****"


def get_config_summary() -> str:
    """
    Get a summary of the current configuration (for logging).
    Sensitive values are masked.
    """
    return f"""
Barcode Resolver Configuration:
  Catalogs:
    - Food: {FOOD_API_URL}
    - Beauty: {BEAUTY_API_URL}
    - General: {PRODUCTS_API_URL}
    - Branded foods: {USDA_API_URL} (key: {_mask(USDA_API_KEY)})

  HTTP:
    - Timeout (connect/read): {CONNECT_TIMEOUT}s / {READ_TIMEOUT}s
    - User-Agent: {USER_AGENT}

  Cache:
    - Database: {CACHE_DB_PATH}
    - TTL: {CACHE_TTL_DAYS} days

  Vocabulary:
    - Source: {VOCABULARY_PATH or "bundled"}
"""


if __name__ == "__main__":
    print("Validating configuration...")
    validate_config()
    print("Configuration is valid!")
    print(get_config_summary())
