"""
Static ingredient vocabularies.

The harmful-ingredient, common-allergen and keyword tables are configuration
data: they ship as a versioned JSON file and can be replaced through the
VOCABULARY_PATH environment variable.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from scanscore.core.config import VOCABULARY_PATH

logger = logging.getLogger(__name__)

DEFAULT_VOCABULARY_FILE = Path(__file__).resolve().parent.parent / "data" / "vocabulary.json"

REQUIRED_TABLES = ("harmful_ingredients", "common_allergens", "personal_care_keywords")


@dataclass(frozen=True)
class Vocabulary:
    """Lookup tables used by the normalizers."""
    version: str
    harmful_ingredients: List[str]
    common_allergens: List[str]
    personal_care_keywords: List[str]
    cruelty_free_labels: List[str] = field(default_factory=list)

    def find_harmful(self, text: str) -> List[str]:
        """
        Harmful vocabulary entries found in `text` (case-insensitive), in table order.

        An entry only matches at the start of a word, so "Ethylparaben" is not
        reported for a label that lists "Methylparaben".
        """
        lowered = text.lower()
        return [
            name for name in self.harmful_ingredients
            if re.search(r"(?<![a-z])" + re.escape(name.lower()), lowered)
        ]

    def find_allergens(self, text: str) -> List[str]:
        """Common allergens contained in `text`, capitalized for display."""
        lowered = text.lower()
        return [a[:1].upper() + a[1:] for a in self.common_allergens if a.lower() in lowered]

    def is_personal_care(self, category_text: str) -> bool:
        lowered = category_text.lower()
        return any(keyword in lowered for keyword in self.personal_care_keywords)


def load_vocabulary(path: Optional[Union[str, Path]] = None) -> Vocabulary:
    """
    Load vocabulary tables from a JSON file.

    Args:
        path: JSON file to read (defaults to VOCABULARY_PATH or the bundled file)

    Returns:
        Vocabulary instance

    Raises:
        ValueError: If a required table is missing or not a list of strings
    """
    vocab_path = Path(path or VOCABULARY_PATH or DEFAULT_VOCABULARY_FILE)
    with open(vocab_path, encoding="utf-8") as f:
        data = json.load(f)

    for table in REQUIRED_TABLES:
        values = data.get(table)
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"Vocabulary table '{table}' must be a list of strings ({vocab_path})")

    logger.debug(f"Loaded vocabulary {data.get('version', 'unversioned')} from {vocab_path}")

    return Vocabulary(
        version=str(data.get("version", "unversioned")),
        harmful_ingredients=list(data["harmful_ingredients"]),
        common_allergens=list(data["common_allergens"]),
        personal_care_keywords=list(data["personal_care_keywords"]),
        cruelty_free_labels=list(data.get("cruelty_free_labels", [])),
    )


_default_vocabulary: Optional[Vocabulary] = None


def get_vocabulary() -> Vocabulary:
    """Return the process-wide vocabulary, loading it on first use."""
    global _default_vocabulary
    if _default_vocabulary is None:
        _default_vocabulary = load_vocabulary()
    return _default_vocabulary
