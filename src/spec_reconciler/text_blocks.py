"""Parser for the plain-text ISQ block format emitted by the extraction stage.

Expected layout::

    === CONFIG SPECIFICATION ===
    Name: Grade
    Options: 304 | 316 | 430

    === KEY SPECIFICATION 1 ===
    Name: Thickness
    Options: 1 mm | 2 mm

Partial output is fine: keys without a config, or a config without keys.
"""

import logging
import re

from .config import MAX_CONFIG_OPTIONS, MAX_KEY_OPTIONS, MAX_KEYS
from .models import ConfigKeySet, SpecificationRecord
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


# =============================================================================
# PRE-COMPILED REGEX PATTERNS
# =============================================================================

_BLOCK_BODY = r"\s*===\s*\n\s*Name:\s*(.+?)\s*\n\s*Options:\s*(.+?)(?=\n===|\n\n|$)"
_CONFIG_BLOCK_PATTERN = re.compile(
    r"===\s*CONFIG SPECIFICATION" + _BLOCK_BODY, re.IGNORECASE | re.DOTALL
)
_KEY_BLOCK_PATTERNS = tuple(
    re.compile(rf"===\s*KEY SPECIFICATION {n}" + _BLOCK_BODY, re.IGNORECASE | re.DOTALL)
    for n in range(1, MAX_KEYS + 1)
)
_OPTION_SEPARATOR_PATTERN = re.compile(r"\s*\|\s*")


def is_relevant_spec(name: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """False for names about the listing rather than the product ('Price', 'Seller Location')."""
    lower = name.lower().strip()
    return not any(term in lower for term in vocabulary.irrelevant_spec_terms)


def is_relevant_option(option: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """False for values equal to or containing a placeholder term: 'Other', 'N/A', 'Otherwise'."""
    lower = option.lower().strip()
    return not any(term in lower for term in vocabulary.irrelevant_option_terms)


def _parse_block(
    match: re.Match | None, limit: int, vocabulary: Vocabulary, label: str
) -> SpecificationRecord | None:
    if not match:
        return None
    name = match.group(1).strip()
    if not name:
        return None
    if not is_relevant_spec(name, vocabulary):
        logger.warning(f"Skipping irrelevant {label} spec: {name!r}")
        return None

    options = [
        opt.strip() for opt in _OPTION_SEPARATOR_PATTERN.split(match.group(2).strip())
        if opt.strip() and is_relevant_option(opt, vocabulary)
    ][:limit]
    if not options:
        return None
    return SpecificationRecord(name, options)


def parse_text_blocks(text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> ConfigKeySet | None:
    """Parse CONFIG/KEY blocks into a :class:`ConfigKeySet`; None if no valid block."""
    if not text:
        return None

    config = _parse_block(_CONFIG_BLOCK_PATTERN.search(text), MAX_CONFIG_OPTIONS, vocabulary, "config")

    keys = []
    for n, pattern in enumerate(_KEY_BLOCK_PATTERNS, start=1):
        key = _parse_block(pattern.search(text), MAX_KEY_OPTIONS, vocabulary, f"key {n}")
        if key is not None:
            keys.append(key)

    if config is None and not keys:
        logger.warning("No valid specification blocks found in text")
        return None

    logger.info(f"Parsed text blocks: {1 if config else 0} config + {len(keys)} keys")
    return ConfigKeySet(config=config, keys=keys)
