"""Resolution pipeline: cache, catalog cascade, merge, enrichment."""

from scanscore.pipelines.resolver import Resolver, create_resolver, merge_products

__all__ = ["Resolver", "create_resolver", "merge_products"]
