"""Final clean-up of buyer-facing option lists."""

import logging

from .models import SpecificationRecord
from .similarity import SimilarityMatcher
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


def is_placeholder(option: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    """True for 'Other', 'Various sizes', 'Size TBD', 'Please specify', ..."""
    lower = option.strip().lower()
    return any(
        lower == term
        or lower.startswith(term + " ")
        or lower.endswith(" " + term)
        or f" {term} " in lower
        for term in vocabulary.placeholder_options
    )


def curate(options: list[str], vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    """Drop placeholders and duplicates (exact or similar), keeping first-seen order."""
    matcher = SimilarityMatcher(vocabulary)
    curated: list[str] = []
    seen: set[str] = set()

    for opt in options:
        clean = opt.strip()
        if not clean:
            continue
        if is_placeholder(clean, vocabulary):
            logger.debug(f"Removing placeholder option: {opt!r}")
            continue
        lower = clean.lower()
        if lower in seen or matcher.is_duplicate(clean, curated):
            continue
        curated.append(clean)
        seen.add(lower)

    return curated


def dedup_specs(records: list[SpecificationRecord]) -> list[SpecificationRecord]:
    """Keep the first record for each distinct option set, whatever the names."""
    unique: list[SpecificationRecord] = []
    seen: dict[tuple[str, ...], str] = {}

    for record in records:
        signature = tuple(sorted(opt.strip().lower() for opt in record.options))
        if signature in seen:
            logger.info(f"Dropping {record.name!r}: same options as {seen[signature]!r}")
            continue
        seen[signature] = record.name
        unique.append(record)

    return unique


def enhance_options_locally(
    common: list[str],
    stage1_options: list[str],
    needed: int,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> list[str]:
    """Pick up to ``needed`` Stage 1 options that do not duplicate what is already there."""
    matcher = SimilarityMatcher(vocabulary)
    additional: list[str] = []
    for opt in stage1_options:
        if len(additional) >= needed:
            break
        if not matcher.is_duplicate(opt, common + additional):
            additional.append(opt)
    logger.debug(f"Local enhancement added {len(additional)} of {needed} options")
    return additional
