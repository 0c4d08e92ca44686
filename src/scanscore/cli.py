#!/usr/bin/env python3
"""
scanscore - Barcode lookup, health scoring and alternatives from the command line.

Usage:
    scanscore lookup 3017620422003                 # Resolve and score a barcode
    scanscore search "peanut butter"               # Free-text catalog search
    scanscore alternatives 3017620422003           # Suggest better products
    scanscore history --category FOOD              # Previously resolved products
    scanscore evict                                # Drop expired cache entries
    scanscore --output-json lookup 3017620422003   # Machine-readable output
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from scanscore.cache.store import CacheStore
from scanscore.core.config import CACHE_DB_PATH, get_config_summary, validate_config
from scanscore.core.errors import ResolutionCancelled, ResolutionFailed, TransportError
from scanscore.core.schema import Alternative, Product, ProductCategory, dataclass_to_dict
from scanscore.pipelines.resolver import create_resolver
from scanscore.scoring.alternatives import AlternativesFinder
from scanscore.scoring.score_engine import score_label

logger = logging.getLogger(__name__)


# =============================================================================
# Output Formatting
# =============================================================================

def format_product(product: Product) -> str:
    lines = [
        "=" * 60,
        f"{product.name}" + (f" ({product.brand})" if product.brand else ""),
        "=" * 60,
        f"Barcode:      {product.code}",
        f"Category:     {product.category.value}",
        f"Health score: {product.health_score}/100 - {score_label(product.health_score)}",
        f"Data:         {product.data_availability.value}",
        f"Source:       {product.source or 'unknown'}",
    ]

    if product.nutrition is not None:
        n = product.nutrition
        lines.append("\nNutrition (per 100g):")
        for label, value in (
            ("Sugars", n.sugars_100g),
            ("Salt", n.salt_100g),
            ("Saturated fat", n.saturated_fat_100g),
            ("Proteins", n.proteins_100g),
            ("Fiber", n.fiber_100g),
            ("Energy (kcal)", n.energy_kcal_100g),
        ):
            if value is not None:
                lines.append(f"  - {label}: {value:.2f}")
        if n.official_grade:
            lines.append(f"  - Nutri-Score: {n.official_grade.upper()}")
        if n.processing_level is not None:
            lines.append(f"  - NOVA group: {n.processing_level}")

    if product.beauty is not None and product.beauty.harmful_ingredients:
        lines.append("\nHarmful ingredients: " + ", ".join(product.beauty.harmful_ingredients))

    if product.allergens:
        lines.append("Allergens: " + ", ".join(product.allergens))

    if product.warnings:
        lines.append("\nWarnings:")
        for warning in product.warnings:
            lines.append(f"  - {warning}")

    return "\n".join(lines)


def format_alternative(alternative: Alternative) -> str:
    marker = " (suggestion)" if alternative.is_synthetic else ""
    return (
        f"  +{alternative.score_difference:>3}  {alternative.name}{marker}\n"
        f"        {alternative.improvement_reason}"
    )


def emit(data, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(dataclass_to_dict(data), indent=2, ensure_ascii=False))
    else:
        print(text)


# =============================================================================
# Commands
# =============================================================================

def cmd_lookup(args) -> int:
    resolver = create_resolver(db_path=args.db)
    try:
        product = resolver.resolve(args.code)
    finally:
        resolver.close()
    emit(product, args.output_json, format_product(product))
    return 0


def cmd_search(args) -> int:
    resolver = create_resolver(db_path=args.db)
    try:
        hits = resolver.search(args.query, page=args.page, include_branded=not args.no_branded)
    finally:
        resolver.close()
    text = "\n".join(
        f"{hit.code:<15} [{hit.source}] {hit.name}" + (f" - {hit.brand}" if hit.brand else "")
        for hit in hits
    ) or "No results."
    emit(hits, args.output_json, text)
    return 0


def cmd_alternatives(args) -> int:
    resolver = create_resolver(db_path=args.db)
    try:
        product = resolver.resolve(args.code)
        alternatives = AlternativesFinder(resolver).find(product)
    finally:
        resolver.close()

    text = f"Alternatives for {product.name} (score {product.health_score}):\n"
    text += "\n".join(format_alternative(alt) for alt in alternatives) or "  None found."
    emit(alternatives, args.output_json, text)
    return 0


def cmd_history(args) -> int:
    store = CacheStore(args.db)
    try:
        category = ProductCategory(args.category.upper()) if args.category else None
        products = store.list_products(category)
    finally:
        store.close()

    text = "\n".join(
        f"{p.resolved_at:%Y-%m-%d %H:%M}  {p.code:<15} {p.health_score:>3}  {p.name}"
        for p in products
    ) or "No scan history."
    emit(products, args.output_json, text)
    return 0


def cmd_evict(args) -> int:
    store = CacheStore(args.db)
    try:
        removed = store.evict_expired()
    finally:
        store.close()

    emit({"evicted": removed}, args.output_json, f"Evicted {removed} expired cache entries.")
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scanscore",
        description="Resolve product barcodes across open catalogs and score them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  USDA_API_KEY     FoodData Central API key (default: DEMO_KEY)
  CACHE_DB_PATH    Cache database location (default: data/scanscore.db)
  CACHE_TTL_DAYS   Days a cached product stays fresh (default: 30)
        """,
    )
    parser.add_argument("--db", default=CACHE_DB_PATH, help="Cache database path")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--output-json", action="store_true", help="Print JSON instead of text")

    subparsers = parser.add_subparsers(dest="command", required=True)

    lookup = subparsers.add_parser("lookup", help="Resolve and score a barcode")
    lookup.add_argument("code", help="Product barcode")
    lookup.set_defaults(func=cmd_lookup)

    search = subparsers.add_parser("search", help="Search catalogs by text")
    search.add_argument("query", help="Search terms")
    search.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    search.add_argument("--no-branded", action="store_true", help="Skip the branded-foods catalog")
    search.set_defaults(func=cmd_search)

    alternatives = subparsers.add_parser("alternatives", help="Suggest better-scoring products")
    alternatives.add_argument("code", help="Product barcode")
    alternatives.set_defaults(func=cmd_alternatives)

    history = subparsers.add_parser("history", help="List previously resolved products")
    history.add_argument(
        "--category",
        choices=[c.value for c in ProductCategory],
        type=str.upper,
        help="Only show one category",
    )
    history.set_defaults(func=cmd_history)

    evict = subparsers.add_parser("evict", help="Delete expired cache entries")
    evict.set_defaults(func=cmd_evict)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    validate_config()
    logger.debug(get_config_summary())

    try:
        return args.func(args)
    except ResolutionFailed as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ResolutionCancelled as e:
        print(f"Cancelled: {e}", file=sys.stderr)
        return 1
    except (TransportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
