"""Specification name normalization.

Turns free-text names into a comparable token string:
- 'Thk (mm)' -> 'thickness mm'
- 'Colour of Sheet' -> 'color'
- 'Surface Finish' -> 'finish'
"""

import re

from .vocabulary import DEFAULT_VOCABULARY, Vocabulary

_PUNCTUATION_PATTERN = re.compile(r"[()\-_,.;]")

# Shorter tokens only map by exact lookup ('m' must not become 'material')
_MIN_FALLBACK_TOKEN_LENGTH = 3


def _standardize_token(token: str, vocabulary: Vocabulary) -> str:
    canonical = vocabulary.standardize(token)
    if canonical is not None:
        return canonical
    if len(token) < _MIN_FALLBACK_TOKEN_LENGTH:
        return token
    # Substring fallback: first table key contained in the token (or containing it) wins
    for key, value in vocabulary.name_standardizations:
        if key in token or token in key:
            return value
    return token


def normalize(name: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> str:
    """Normalize a specification name. Pure and total; '' for empty input."""
    if not name:
        return ""
    text = _PUNCTUATION_PATTERN.sub(" ", name.lower().strip())

    tokens: list[str] = []
    for word in text.split():
        if word in vocabulary.name_stop_words:
            continue
        token = _standardize_token(word, vocabulary)
        if token in vocabulary.name_stop_words or token in tokens:
            continue
        tokens.append(token)

    return " ".join(tokens)
