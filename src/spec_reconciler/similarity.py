"""Similarity rules for specification names and option values.

Names are compared after normalization, then through synonym groups.
Options go through a stricter cascade:
1. Exact match (case-insensitive, then whitespace-insensitive)
2. Material grade aliases, guarded by an exact grade check (304 != 304L)
3. Length measurements converted to mm ('1 inch' == '25.4mm')
4. Shape aliases ('round' == 'circular')
"""

import logging
import re

from .config import MEASUREMENT_EPSILON_MM
from .normalizer import normalize
from .parsers import extract_grade, parse_length_mm
from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

_WHITESPACE_PATTERN = re.compile(r"\s+")


def _in_group(text: str, group: tuple[str, ...]) -> bool:
    return any(term in text for term in group)


class SimilarityMatcher:
    """Decides whether two names, or two options, refer to the same thing."""

    def __init__(self, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def names_similar(self, a: str, b: str) -> bool:
        norm_a = normalize(a, self.vocabulary)
        norm_b = normalize(b, self.vocabulary)
        if not norm_a or not norm_b:
            return False
        if norm_a == norm_b:
            return True
        if norm_a in norm_b or norm_b in norm_a:
            return True
        for group in self.vocabulary.name_synonym_groups:
            if _in_group(norm_a, group) and _in_group(norm_b, group):
                return True
        return False

    def options_similar(self, a: str, b: str) -> bool:
        if not a or not b:
            return False

        clean_a = a.lower().strip()
        clean_b = b.lower().strip()
        if clean_a == clean_b:
            return True
        if _WHITESPACE_PATTERN.sub("", clean_a) == _WHITESPACE_PATTERN.sub("", clean_b):
            return True

        # Material/grade aliases: same group only counts if the grade token agrees
        for group in self.vocabulary.material_grade_groups:
            if _in_group(clean_a, group) and _in_group(clean_b, group):
                grade_a = extract_grade(clean_a)
                grade_b = extract_grade(clean_b)
                if grade_a and grade_b and grade_a != grade_b:
                    logger.debug(f"Grade mismatch: {a!r} ({grade_a}) vs {b!r} ({grade_b})")
                    return False
                return True

        mm_a = parse_length_mm(clean_a)
        mm_b = parse_length_mm(clean_b)
        if mm_a is not None and mm_b is not None and abs(mm_a - mm_b) < MEASUREMENT_EPSILON_MM:
            return True

        for group in self.vocabulary.shape_groups:
            if _in_group(clean_a, group) and _in_group(clean_b, group):
                return True

        return False

    def is_duplicate(self, option: str, existing: list[str]) -> bool:
        """True if option is equal (case-insensitive) or similar to any existing option."""
        clean = option.strip().lower()
        return any(
            clean == other.strip().lower() or self.options_similar(option, other)
            for other in existing
        )


DEFAULT_MATCHER = SimilarityMatcher()


def names_similar(a: str, b: str) -> bool:
    """Whether two specification names refer to the same attribute."""
    return DEFAULT_MATCHER.names_similar(a, b)


def options_similar(a: str, b: str) -> bool:
    """Whether two option values refer to the same value."""
    return DEFAULT_MATCHER.options_similar(a, b)


def is_option_duplicate(option: str, existing: list[str]) -> bool:
    return DEFAULT_MATCHER.is_duplicate(option, existing)
