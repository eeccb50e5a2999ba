"""Prompt builders for each LLM stage."""

import json
from typing import Any

from .config import MAX_CONFIG_OPTIONS, MAX_KEYS, PAGE_EXCERPT_CHARS
from .models import ConfigKeySet, SpecificationRecord


def mcat_names(input_data: dict[str, Any]) -> str:
    """Comma-joined mcat names from Stage 1 input ({"mcats": [{"mcat_name": ...}]})."""
    mcats = input_data.get("mcats") if isinstance(input_data, dict) else None
    if not isinstance(mcats, list):
        return ""
    return ", ".join(
        str(m["mcat_name"]) for m in mcats if isinstance(m, dict) and m.get("mcat_name")
    )


def build_stage1_prompt(input_data: dict[str, Any]) -> str:
    return f"""You are an AI that builds seller specifications for industrial product categories (MCATs).

INPUT DATA:
{json.dumps(input_data, indent=2, ensure_ascii=False)}

TASK:
For every MCAT, list the specifications a seller must fill in, split into
primary, secondary and tertiary tiers, each with its permissible options.

RULES:
1. "Grade" (material grade: 304, 316, MS) and "Standard" (IS 2062, ASTM, EN) are DIFFERENT specifications
2. "304" and "304L" are DIFFERENT options
3. Do not repeat a value in different formats ("2mm", "2 mm", "2.0mm")
4. Do not include "Other", "etc." or "N/A" options

OUTPUT FORMAT (JSON ONLY):
{{
  "seller_specs": [
    {{
      "mcats": [
        {{
          "category_name": "<mcat name>",
          "mcat_id": <id>,
          "finalized_specs": {{
            "finalized_primary_specs": {{"specs": [{{"spec_name": "Grade", "options": ["304", "316"], "input_type": "radio_button"}}]}},
            "finalized_secondary_specs": {{"specs": []}},
            "finalized_tertiary_specs": {{"specs": []}}
          }}
        }}
      ]
    }}
  ]
}}

Return ONLY valid JSON, no explanations."""


def build_audit_prompt(mcat_name: str, specs: list[SpecificationRecord]) -> str:
    blocks = []
    for i, spec in enumerate(specs, start=1):
        options = ", ".join(json.dumps(opt, ensure_ascii=False) for opt in spec.options)
        tier = spec.tier.value if spec.tier else "N/A"
        blocks.append(f'{i}. Specification: "{spec.name}"\n   Options: {options}\n   Tier: {tier}')
    specs_text = "\n\n".join(blocks)
    return f"""You are a STRICT industrial specification auditor. Your task is to find REAL problems.

MCAT Name: {mcat_name}

Specifications to Audit:
{specs_text}

Task:
- For each specification, check if it is relevant to the MCAT "{mcat_name}"
- For each option, check for:
  - Irrelevance to the specification or MCAT
  - Duplicates: "SS304", "ss304" -> INCORRECT; "2mm", "2 mm", "2.0mm" -> INCORRECT
  - Overlapping values: "1219 mm" AND "4 ft" as separate options -> INCORRECT
- If the MCAT name already fixes a specification ("304 Stainless Steel Sheet" with Grade options
  "304", "316") the whole specification is INCORRECT

Rules:
- DO NOT generate new specifications or options
- An option listing two units in the SAME entry ("1219 mm (4 ft)") is CORRECT
- Only return "correct" or "incorrect", with an explanation and problematic_options if incorrect

Output Format (JSON Array):
[
  {{"specification": "Grade", "status": "correct"}},
  {{
    "specification": "Width",
    "status": "incorrect",
    "explanation": "1219 mm and 4 ft listed separately -> overlapping units.",
    "problematic_options": ["1219 mm", "4 ft"]
  }}
]

Return ONLY a valid JSON array starting with [ and ending with ]. No markdown."""


def build_isq_extraction_prompt(product_name: str, urls: list[str], contents: list[str]) -> str:
    urls_text = "\n\n".join(
        f"URL {i}: {url}\nContent: {content[:PAGE_EXCERPT_CHARS]}..."
        for i, (url, content) in enumerate(zip(urls, contents), start=1)
    )
    return f"""You are an AI that extracts ONLY RELEVANT product specifications from multiple URLs.

Extract specifications from these {len(urls)} URLs for: {product_name}

URLs:
{urls_text}

RELEVANCE RULES:
1. ONLY extract specifications DIRECTLY RELEVANT to "{product_name}"
2. DO NOT extract "Measurement system", "Availability", "Price", "Delivery" or similar listing data
3. DO NOT include specifications already fixed by the product name
4. DO NOT include "Other", "etc." or "N/A" options
5. Prefer specifications that appear in several URLs; combine their options
6. For overlapping ranges ("0.14-2.00 mm" and "0.25-2.00 mm") keep only the wider range
7. DO NOT use "Range" as a specification name

SELECTION:
- 1 CONFIG specification if found (most price-affecting), up to {MAX_CONFIG_OPTIONS} options
- Up to {MAX_KEYS} KEY specifications
- Output only what you find; do not invent specifications

OUTPUT FORMAT:

=== CONFIG SPECIFICATION ===
Name: [specification name]
Options: [option 1] | [option 2] | [option 3]

=== KEY SPECIFICATION 1 ===
Name: [specification name]
Options: [option 1] | [option 2]

=== KEY SPECIFICATION 2 ===
Name: [specification name]
Options: [option 1] | [option 2]

=== KEY SPECIFICATION 3 ===
Name: [specification name]
Options: [option 1] | [option 2]

Output ONLY the formatted specifications. No explanations.
"""


def build_common_specs_prompt(stage1_specs: list[SpecificationRecord], bundle: ConfigKeySet) -> str:
    stage1_text = "\n".join(
        f"{i}. {spec.name} ({spec.tier.value if spec.tier else 'Unknown'})\n   Options: {', '.join(spec.options)}"
        for i, spec in enumerate(stage1_specs, start=1)
    )
    stage2_text = "\n".join(
        f"{i}. {spec.name}\n   Options: {', '.join(spec.options)}"
        for i, spec in enumerate(bundle.all_specs(), start=1)
    )
    return f"""You are an AI that finds COMMON specifications and common options between two data sources.

STAGE 1 SPECIFICATIONS (from uploaded data):
{stage1_text}

STAGE 2 SPECIFICATIONS (from website data):
{stage2_text}

INSTRUCTIONS:
1. Find ALL specifications that exist in BOTH Stage 1 and Stage 2
2. "Grade", "Standard" and "Quality" are DIFFERENT specifications; match them only by exact or very similar names
3. One specification matches at most one specification of the other stage
4. For each common specification use the EXACT Stage 1 name and Stage 1 category (Primary/Secondary)
5. List ALL common options exactly as written in Stage 1; "304" and "304L" are different options
6. A range ("0.14-2.00 mm") in one stage covers the discrete values inside it in the other
7. Convert units before comparing (1 inch = 25.4 mm, 1 cm = 10 mm)
8. A common specification with ZERO common options is still listed with an empty options column

OUTPUT FORMAT (PLAIN TEXT TABLE):
Specification Name | Stage 1 Category | Common Options
Grade | Primary | 304, 316, 430
Finish | Secondary |

NO JSON, NO MARKDOWN, JUST THE PLAIN TEXT TABLE."""


def build_enhance_prompt(spec_name: str, common: list[str], stage1_options: list[str], needed: int) -> str:
    existing = "\n".join(f"{i}. {opt}" for i, opt in enumerate(common, start=1)) or "(none)"
    available = "\n".join(f"{i}. {opt}" for i, opt in enumerate(stage1_options, start=1))
    return f"""You are an AI that selects the most relevant product specification options.

SPECIFICATION NAME: "{spec_name}"

EXISTING OPTIONS (already selected):
{existing}

AVAILABLE STAGE 1 OPTIONS (to choose from):
{available}

TASK:
Select {needed} options from the Stage 1 options to add to the existing options.

RULES:
1. DO NOT select an option that is already present or means the same thing
   ("304" exists -> skip "SS304"; "2mm" exists -> skip "2 mm", "2.0mm")
2. Prefer industry-standard, commonly used options
3. If fewer than {needed} unique options are available, return as many as possible
4. DO NOT include "Other" or "etc."

OUTPUT FORMAT (JSON ONLY):
{{
  "selected_options": ["option1", "option2"]
}}"""
