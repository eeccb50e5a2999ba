"""Cross-source specification matching.

Stage 1 (authoritative, tiered specs) is compared against a Stage 2
bundle (config/keys/buyers scraped from seller pages). Matching is greedy
and one-to-one: each spec binds to at most one spec on the other side.
"""

import logging
from typing import Any

from .config import NO_COMMON_OPTIONS
from .models import (
    CommonSpecEntry,
    ComparisonResult,
    ConfigKeySet,
    SpecificationRecord,
    Tier,
)
from .parsers import parse_magnitude, parse_range, units_compatible
from .similarity import DEFAULT_MATCHER, SimilarityMatcher

logger = logging.getLogger(__name__)

# Stage 1 tier sections, in output order
_TIER_SECTIONS: tuple[tuple[str, Tier], ...] = (
    ("finalized_primary_specs", Tier.PRIMARY),
    ("finalized_secondary_specs", Tier.SECONDARY),
    ("finalized_tertiary_specs", Tier.TERTIARY),
)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def flatten_stage1(output: dict[str, Any]) -> list[SpecificationRecord]:
    """Flatten Stage 1 seller specs into tiered records.

    Walks seller_specs[].mcats[].finalized_specs.finalized_{tier}_specs.specs[],
    primary before secondary before tertiary within each mcat.
    """
    records: list[SpecificationRecord] = []
    for seller in _as_list(_as_dict(output).get("seller_specs")):
        for mcat in _as_list(_as_dict(seller).get("mcats")):
            finalized = _as_dict(_as_dict(mcat).get("finalized_specs"))
            for section, tier in _TIER_SECTIONS:
                for spec in _as_list(_as_dict(finalized.get(section)).get("specs")):
                    spec = _as_dict(spec)
                    name = spec.get("spec_name")
                    if not isinstance(name, str) or not name.strip():
                        continue
                    options = [o for o in _as_list(spec.get("options")) if isinstance(o, str)]
                    records.append(SpecificationRecord(name.strip(), options, tier))
    return records


def find_spec(
    name: str, specs: list[SpecificationRecord], matcher: SimilarityMatcher = DEFAULT_MATCHER
) -> SpecificationRecord | None:
    """First spec named exactly ``name``, else the first with a similar name."""
    for spec in specs:
        if spec.name == name:
            return spec
    for spec in specs:
        if matcher.names_similar(spec.name, name):
            return spec
    return None


def tier_category(tier: Tier | None) -> str:
    """Category label for a common spec: 'Primary' for primary specs, else 'Secondary'."""
    return Tier.PRIMARY.value if tier == Tier.PRIMARY else Tier.SECONDARY.value


# =============================================================================
# OPTION INTERSECTION
# =============================================================================


def common_options(
    list_a: list[str], list_b: list[str], matcher: SimilarityMatcher = DEFAULT_MATCHER
) -> list[str]:
    """Options of ``list_a`` that have a counterpart in ``list_b``, in A's spelling.

    Pass 1 pairs similar options, consuming each B value at most once.
    Pass 2 treats remaining B values as ranges ('0.14-2.00 mm') and picks up
    A magnitudes that fall inside them.
    """
    common: list[str] = []
    used_b: set[int] = set()

    for opt_a in list_a:
        for j, opt_b in enumerate(list_b):
            if j in used_b:
                continue
            if matcher.options_similar(opt_a, opt_b):
                common.append(opt_a)
                used_b.add(j)
                logger.debug(f"Option match: {opt_a!r} ~ {opt_b!r}")

    for j, opt_b in enumerate(list_b):
        if j in used_b:
            continue
        parsed_range = parse_range(opt_b)
        if parsed_range is None:
            continue
        low, high, range_unit = parsed_range
        for opt_a in list_a:
            if opt_a in common or parse_range(opt_a) is not None:
                continue
            magnitude = parse_magnitude(opt_a)
            if magnitude is None:
                continue
            value, unit = magnitude
            if units_compatible(range_unit, unit) and low <= value <= high:
                common.append(opt_a)
                logger.debug(f"Range match: {opt_a!r} within {opt_b!r}")
        used_b.add(j)

    return common


def _unique_options(options: list[str], others: list[str], matcher: SimilarityMatcher) -> list[str]:
    return [opt for opt in options if not any(matcher.options_similar(opt, other) for other in others)]


# =============================================================================
# SPEC MATCHING
# =============================================================================


def compare(
    set_a: list[SpecificationRecord],
    set_b: list[SpecificationRecord],
    matcher: SimilarityMatcher = DEFAULT_MATCHER,
) -> ComparisonResult:
    """Greedily pair specs of A with not-yet-matched specs of B by name similarity."""
    result = ComparisonResult()
    matched_b: set[int] = set()

    for spec_a in set_a:
        match_index = None
        for j, spec_b in enumerate(set_b):
            if j not in matched_b and matcher.names_similar(spec_a.name, spec_b.name):
                match_index = j
                break

        if match_index is None:
            result.unique_a.append(spec_a)
            continue

        matched_b.add(match_index)
        spec_b = set_b[match_index]
        result.common.append(CommonSpecEntry(
            spec_name=spec_a.name,
            category=tier_category(spec_a.tier),
            common_options=common_options(spec_a.options, spec_b.options, matcher),
            source_a_unique_options=_unique_options(spec_a.options, spec_b.options, matcher),
            source_b_unique_options=_unique_options(spec_b.options, spec_a.options, matcher),
            source_b_name=spec_b.name,
        ))

    result.unique_b = [spec for j, spec in enumerate(set_b) if j not in matched_b]
    return result


def find_common_specs_locally(
    stage1_specs: list[SpecificationRecord],
    bundle: ConfigKeySet,
    matcher: SimilarityMatcher = DEFAULT_MATCHER,
) -> list[CommonSpecEntry]:
    """Common specs between Stage 1 and a Stage 2 bundle without an LLM.

    Specs with no overlapping options still appear, carrying the
    'No common options available' sentinel.
    """
    result = compare(stage1_specs, bundle.all_specs(), matcher)
    for entry in result.common:
        if not entry.common_options:
            entry.common_options = [NO_COMMON_OPTIONS]
        logger.debug(f"Local common spec: {entry.spec_name} <- {entry.source_b_name}")
    logger.info(f"Found {len(result.common)} common specs locally")
    return result.common


def dedupe_common_options(entries: list[CommonSpecEntry]) -> list[CommonSpecEntry]:
    """Trim options and drop empty or exact-duplicate ones within each entry."""
    for entry in entries:
        seen: list[str] = []
        for opt in (o.strip() for o in entry.common_options):
            if opt and opt not in seen:
                seen.append(opt)
        entry.common_options = seen
    return entries
