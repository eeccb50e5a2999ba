"""Parser for the pipe-delimited common-spec table.

Rows look like ``Name | Category | opt1, opt2`` or ``Name | opt1, opt2``.
Every row is anchored to a Stage 1 spec; rows that match nothing are dropped.
"""

import logging

from .config import NO_COMMON_OPTIONS
from .matcher import find_spec
from .models import CommonSpecEntry, SpecificationRecord, Tier
from .similarity import DEFAULT_MATCHER, SimilarityMatcher

logger = logging.getLogger(__name__)

# Lines containing any of these are headers or separators
_HEADER_MARKERS = ("specification", "stage 1 category")
_SEPARATOR_MARKERS = ("---", "===")

_CATEGORY_VALUES = {tier.value.lower() for tier in Tier}
_NO_COMMON_MARKER = "no common options"


def parse_options_simple(cell: str) -> list[str]:
    """Split a comma-separated options cell, dropping blanks and 'no common options' text."""
    if not cell or not cell.strip():
        return []
    return [
        opt.strip() for opt in cell.split(",")
        if opt.strip() and _NO_COMMON_MARKER not in opt.lower()
    ]


def _is_header(line: str) -> bool:
    lower = line.lower()
    return any(m in lower for m in _HEADER_MARKERS) or any(m in line for m in _SEPARATOR_MARKERS)


def _split_row(line: str) -> list[str]:
    line = line.strip()
    if line.startswith("|"):
        line = line[1:]
    if line.endswith("|"):
        line = line[:-1]
    return [cell.strip() for cell in line.split("|")]


def parse_common_spec_table(
    text: str,
    stage1_specs: list[SpecificationRecord],
    matcher: SimilarityMatcher = DEFAULT_MATCHER,
) -> list[CommonSpecEntry]:
    """Parse table rows into common-spec entries named as in Stage 1.

    A matched row with no options gets the 'No common options available'
    sentinel. A Stage 1 spec yields at most one entry.
    """
    entries: list[CommonSpecEntry] = []
    emitted: set[int] = set()

    for line in text.splitlines():
        if not line.strip() or _is_header(line):
            continue
        cells = _split_row(line)
        if len(cells) < 2 or not cells[0]:
            continue

        name = cells[0]
        stage1 = find_spec(name, stage1_specs, matcher)
        if stage1 is None:
            logger.warning(f"No Stage 1 match for table row: {name!r}")
            continue
        if id(stage1) in emitted:
            logger.debug(f"Skipping repeated row for {stage1.name!r}")
            continue

        category = stage1.tier.value if stage1.tier else Tier.PRIMARY.value
        options_cell = ""
        if len(cells) == 2:
            if cells[1].lower() in _CATEGORY_VALUES:
                category = cells[1]
            else:
                options_cell = cells[1]
        else:
            category = cells[1] or category
            options_cell = cells[2]

        options = parse_options_simple(options_cell)
        emitted.add(id(stage1))
        entries.append(CommonSpecEntry(
            spec_name=stage1.name,
            category=category,
            common_options=options or [NO_COMMON_OPTIONS],
            source_b_name=name if name != stage1.name else None,
        ))

    logger.info(f"Parsed {len(entries)} common specs from table")
    return entries
