"""Health scoring, warning tags and alternative suggestions."""

from scanscore.scoring.score_engine import score_product, score_label
from scanscore.scoring.warning_tags import generate_warnings
from scanscore.scoring.alternatives import AlternativesFinder

__all__ = ["score_product", "score_label", "generate_warnings", "AlternativesFinder"]
