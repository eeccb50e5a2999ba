"""Async orchestration of the reconciliation stages.

Stage 1   generate seller specs for the input categories (LLM, JSON)
Audit     check Stage 1 specs for irrelevant or duplicate options (LLM, JSON)
Stage 2   extract config/key specs from seller pages (LLM, text blocks)
Stage 3   find specs common to Stage 1 and Stage 2 (LLM table, local fallback)
Buyers    derive up to 2 curated buyer specs from the common specs

Each stage makes at most one LLM call. Quota errors always propagate;
other upstream failures fall back where a fallback exists.
"""

import asyncio
import json
import logging
import re
from typing import Any, Protocol

from .config import (
    AUDIT_GENERATION,
    ENHANCE_GENERATION,
    MAX_BUYER_OPTIONS,
    MAX_BUYERS,
    NO_COMMON_OPTIONS,
    STAGE1_GENERATION,
    STAGE2_GENERATION,
    STAGE3_GENERATION,
)
from .curation import curate, dedup_specs, enhance_options_locally
from .llm import ConfigurationError, UpstreamError
from .matcher import dedupe_common_options, find_common_specs_locally, find_spec
from .models import AuditResult, CommonSpecEntry, ConfigKeySet, Reconciliation, SpecificationRecord
from .prompts import (
    build_audit_prompt,
    build_common_specs_prompt,
    build_enhance_prompt,
    build_isq_extraction_prompt,
    build_stage1_prompt,
)
from .recovery import extract_json_value, extract_raw_text
from .similarity import is_option_duplicate
from .table_parser import parse_common_spec_table
from .text_blocks import parse_text_blocks

logger = logging.getLogger(__name__)

# Bracketed array anywhere in free text, greedy to the last ']'
_JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
_TRAILING_COMMA_PATTERN = re.compile(r",(\s*[\]}])")


class LLMCollaborator(Protocol):
    """Anything that can run one generateContent call (see :class:`~spec_reconciler.llm.LLMClient`)."""

    api_key: str

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        response_mime_type: str,
    ) -> dict[str, Any]: ...


class PageFetcher(Protocol):
    """Supplies the text content of a seller page."""

    async def fetch(self, url: str) -> str: ...


def _require_key(client: LLMCollaborator, stage: str) -> None:
    if not getattr(client, "api_key", ""):
        raise ConfigurationError(f"{stage} API key not configured")


def _has_key(client: LLMCollaborator | None) -> bool:
    return client is not None and bool(getattr(client, "api_key", ""))


async def _generate(
    client: LLMCollaborator, prompt: str, generation: tuple[float, int, str]
) -> dict[str, Any]:
    temperature, max_output_tokens, mime_type = generation
    return await client.generate(
        prompt,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        response_mime_type=mime_type,
    )


def _raise_if_quota(e: UpstreamError, stage: str) -> None:
    if e.is_quota:
        logger.error(f"{stage}: API quota exhausted")
        raise e


# =============================================================================
# STAGE 1
# =============================================================================


def _empty_stage1() -> dict[str, Any]:
    return {"seller_specs": []}


async def generate_stage1(input_data: dict[str, Any], client: LLMCollaborator) -> dict[str, Any]:
    """Generate Stage 1 seller specs; ``{"seller_specs": []}`` when nothing usable comes back.

    Raises:
        ConfigurationError: client has no API key
        UpstreamError: quota exhausted
    """
    _require_key(client, "Stage 1")
    try:
        data = await _generate(client, build_stage1_prompt(input_data), STAGE1_GENERATION)
    except UpstreamError as e:
        _raise_if_quota(e, "Stage 1")
        logger.warning(f"Stage 1 generation failed, using empty seller specs: {e}")
        return _empty_stage1()

    parsed = extract_json_value(data)
    if not isinstance(parsed, dict) or not isinstance(parsed.get("seller_specs"), list):
        logger.warning("Stage 1 response has no seller_specs, using empty seller specs")
        return _empty_stage1()
    return parsed


# =============================================================================
# AUDIT
# =============================================================================


def _audit_array_from_text(text: str) -> list[Any] | None:
    match = _JSON_ARRAY_PATTERN.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(_TRAILING_COMMA_PATTERN.sub(r"\1", match.group(0)))
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


async def audit_specifications(
    mcat_name: str, specs: list[SpecificationRecord], client: LLMCollaborator
) -> list[AuditResult]:
    """Audit specs for one category. Unparseable output marks every spec correct.

    Raises:
        ConfigurationError: client has no API key
        UpstreamError: any upstream failure
    """
    _require_key(client, "Audit")
    try:
        data = await _generate(client, build_audit_prompt(mcat_name, specs), AUDIT_GENERATION)
    except UpstreamError as e:
        logger.error(f"Audit request failed: {e}")
        raise

    parsed = extract_json_value(data)
    if not isinstance(parsed, list):
        parsed = _audit_array_from_text(extract_raw_text(data))

    if parsed is None:
        logger.warning(f"Could not parse audit output, marking all {len(specs)} specs correct")
        return [AuditResult(specification=spec.name, status="correct") for spec in specs]

    results = [AuditResult.from_dict(item) for item in parsed if isinstance(item, dict)]
    logger.info(f"Audit: {sum(r.status == 'incorrect' for r in results)}/{len(results)} specs flagged")
    return results


# =============================================================================
# STAGE 2
# =============================================================================


async def _fetch_page(fetcher: PageFetcher, url: str) -> str:
    try:
        content = await fetcher.fetch(url)
    except Exception as e:
        logger.warning(f"Failed to fetch {url}: {type(e).__name__}: {e}")
        return ""
    return content or ""


async def extract_isq(
    product_name: str,
    urls: list[str],
    client: LLMCollaborator,
    fetcher: PageFetcher,
) -> ConfigKeySet:
    """Extract a config/keys bundle from seller pages. Empty bundle when nothing is found.

    Raises:
        ConfigurationError: client has no API key
        UpstreamError: quota exhausted
    """
    _require_key(client, "Stage 2")

    contents = list(await asyncio.gather(*[_fetch_page(fetcher, url) for url in urls]))
    fetched = sum(1 for c in contents if c)
    logger.info(f"Stage 2: fetched {fetched}/{len(urls)} pages")
    if not fetched:
        logger.warning("Stage 2: no page content, skipping extraction")
        return ConfigKeySet()

    prompt = build_isq_extraction_prompt(product_name, urls, contents)
    try:
        data = await _generate(client, prompt, STAGE2_GENERATION)
    except UpstreamError as e:
        _raise_if_quota(e, "Stage 2")
        logger.warning(f"Stage 2 extraction failed, using empty bundle: {e}")
        return ConfigKeySet()

    bundle = parse_text_blocks(extract_raw_text(data))
    if bundle is None:
        logger.warning("Stage 2: no specifications extracted")
        return ConfigKeySet()
    return bundle


# =============================================================================
# STAGE 3
# =============================================================================


async def find_common_specs(
    stage1_specs: list[SpecificationRecord],
    bundle: ConfigKeySet,
    client: LLMCollaborator | None = None,
) -> list[CommonSpecEntry]:
    """Common specs via the LLM table, falling back to local matching.

    Raises:
        UpstreamError: quota exhausted
    """
    if not stage1_specs or not bundle.all_specs():
        logger.info("Stage 3: nothing to compare")
        return []

    entries: list[CommonSpecEntry] = []
    if _has_key(client):
        prompt = build_common_specs_prompt(stage1_specs, bundle)
        try:
            data = await _generate(client, prompt, STAGE3_GENERATION)
            entries = parse_common_spec_table(extract_raw_text(data), stage1_specs)
        except UpstreamError as e:
            _raise_if_quota(e, "Stage 3")
            logger.warning(f"Stage 3 request failed, using local matching: {e}")
    else:
        logger.warning("Stage 3 API key not configured, using local matching")

    if not entries:
        entries = find_common_specs_locally(stage1_specs, bundle)
    return dedupe_common_options(entries)


# =============================================================================
# BUYER SPECS
# =============================================================================


async def _enhance_options(
    spec_name: str,
    common: list[str],
    stage1_options: list[str],
    needed: int,
    client: LLMCollaborator | None,
) -> list[str]:
    if not _has_key(client):
        return enhance_options_locally(common, stage1_options, needed)

    prompt = build_enhance_prompt(spec_name, common, stage1_options, needed)
    try:
        data = await _generate(client, prompt, ENHANCE_GENERATION)
    except UpstreamError as e:
        _raise_if_quota(e, "Option enhancement")
        logger.warning(f"Option enhancement failed for {spec_name!r}, using local selection: {e}")
        return enhance_options_locally(common, stage1_options, needed)

    parsed = extract_json_value(data)
    selected = parsed.get("selected_options") if isinstance(parsed, dict) else None
    if not isinstance(selected, list):
        logger.warning(f"Option enhancement returned no selection for {spec_name!r}, using local selection")
        return enhance_options_locally(common, stage1_options, needed)

    return [
        opt.strip() for opt in selected
        if isinstance(opt, str) and opt.strip() and not is_option_duplicate(opt, common)
    ][:needed]


async def generate_buyer_specs(
    common_specs: list[CommonSpecEntry],
    stage1_specs: list[SpecificationRecord],
    client: LLMCollaborator | None = None,
) -> list[SpecificationRecord]:
    """Up to 2 buyer specs from the leading common specs, topped up from Stage 1 options.

    Raises:
        UpstreamError: quota exhausted
    """
    buyers: list[SpecificationRecord] = []
    for entry in common_specs[:MAX_BUYERS]:
        common = [opt for opt in entry.common_options if NO_COMMON_OPTIONS.lower() not in opt.lower()]
        options = common
        stage1 = find_spec(entry.spec_name, stage1_specs)
        if stage1 is not None and len(common) < MAX_BUYER_OPTIONS:
            needed = MAX_BUYER_OPTIONS - len(common)
            options = common + await _enhance_options(entry.spec_name, common, stage1.options, needed, client)
        buyers.append(SpecificationRecord(entry.spec_name, curate(options)[:MAX_BUYER_OPTIONS]))

    buyers = dedup_specs(buyers)
    logger.info(f"Generated {len(buyers)} buyer specs")
    return buyers


async def reconcile(
    stage1_specs: list[SpecificationRecord],
    bundle: ConfigKeySet,
    client: LLMCollaborator | None = None,
) -> Reconciliation:
    """Common specs between Stage 1 and a Stage 2 bundle, plus the buyer specs built from them."""
    common_specs = await find_common_specs(stage1_specs, bundle, client)
    buyer_specs = await generate_buyer_specs(common_specs, stage1_specs, client)
    return Reconciliation(common_specs=common_specs, buyer_specs=buyer_specs)
