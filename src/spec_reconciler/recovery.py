"""Best-effort recovery of structured data from LLM responses.

Model output is often truncated mid-array, wrapped in prose, or echoes the
spec name inside its own options. Recovery runs a cascade, stopping at the
first strategy that produces something:

1. A structured payload attached to the response is used as-is
2. Text parts are joined and cleaned (leading prose and trailing commentary cut)
3. An echoed config name is stripped from "options" arrays
4. Direct ``json.loads``
5. Repair of incomplete JSON (close strings, drop dangling keys, balance brackets)
6. Manual regex extraction of a config name, options and well-known keys

Parsed objects are normalized into a :class:`ConfigKeySet` with options
capped. Nothing in this module raises; ``None`` means nothing was recovered.
"""

import json
import logging
import re
from typing import Any, Callable

from .config import (
    MANUAL_OPTION_MAX_LENGTH,
    MANUAL_OPTION_MIN_LENGTH,
    MAX_BUYERS,
    MAX_CONFIG_OPTIONS,
    MAX_KEY_OPTIONS,
    MAX_KEYS,
    MAX_OPTION_LENGTH,
)
from .models import ConfigKeySet, SpecificationRecord

logger = logging.getLogger(__name__)

ParseStrategy = Callable[[str], Any]


# =============================================================================
# PRE-COMPILED REGEX PATTERNS
# =============================================================================

_NAME_PATTERN = re.compile(r'"name"\s*:\s*"([^"]+)"')
# Options array body, lazily up to the first closing bracket
_OPTIONS_BODY_PATTERN = re.compile(r'"options"\s*:\s*\[([\s\S]*?)\]')
# Options array body that must contain something
_OPTIONS_NONEMPTY_PATTERN = re.compile(r'"options"\s*:\s*\[([^\]]+)\]')
# One array item: a JSON string (commas allowed inside) or a bare run, trimmed
_ARRAY_ITEM_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"|[^,\s](?:[^,]*[^,\s])?')
_QUOTED_PATTERN = re.compile(r'"([^"\n\r]*)"')
_TRAILING_COMMA_PATTERN = re.compile(r",\s*([\]}])")
# '"key":' left at the very end by a truncated response
_DANGLING_KEY_PATTERN = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')
# A bare string in key position (after '{' or ',') at the very end
_DANGLING_OBJECT_KEY_PATTERN = re.compile(r'([{,])\s*"(?:[^"\\]|\\.)*"\s*$')
_STRUCTURAL_CHARS_PATTERN = re.compile(r"[,;\[\]{}]")

# Quoted strings containing these are JSON structure, not option values
_STRUCTURAL_WORDS = ("name", "options", "config", "keys")

# Config name guesses when no "name" field survives, checked in order
_CONFIG_NAME_GUESSES = ("Grade", "Material", "Size")
_DEFAULT_CONFIG_NAME = "Specification"

# Labelled key specs recoverable from broken text: label ... "options" ... [ ... ]
_KEY_PATTERNS: tuple[tuple[str, re.Pattern], ...] = tuple(
    (label, re.compile(label + r'[\s\S]*?"options"[\s\S]*?\[([^\]]+)\]', re.IGNORECASE))
    for label in ("Finish", "Standard", "Type", "Size", "Thickness")
)


# =============================================================================
# RESPONSE ACCESS
# =============================================================================


def _response_parts(response: Any) -> list[dict[str, Any]]:
    """Content parts of the first candidate, or [] for anything unexpected."""
    if not isinstance(response, dict):
        return []
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []
    return [p for p in parts if isinstance(p, dict)]


def structured_payload(response: Any) -> Any | None:
    """A directly-typed payload attached to the response, if any."""
    for part in _response_parts(response):
        if part.get("json") is not None:
            return part["json"]
    return None


def extract_raw_text(response: Any) -> str:
    """All text parts of the first candidate, newline-joined and stripped."""
    texts = [p["text"] for p in _response_parts(response) if isinstance(p.get("text"), str)]
    return "\n".join(texts).strip()


# =============================================================================
# TEXT CLEANING
# =============================================================================


def clean_model_text(text: str) -> str:
    """Cut prose before the first bracket and anything after the last one.

    Leading text is only cut when it holds no quotes, so bare
    '"name": ...' fragments survive for manual extraction.
    """
    cleaned = text.strip()
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if starts:
        start = min(starts)
        if start > 0 and '"' not in cleaned[:start]:
            cleaned = cleaned[start:]

    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if 0 < end < len(cleaned) - 1:
        cleaned = cleaned[:end + 1]
    return cleaned


def _array_items(body: str) -> list[str]:
    """Items of an array body as JSON text; regex split when the body is not valid JSON."""
    try:
        parsed = json.loads(f"[{body}]")
    except ValueError:
        return _ARRAY_ITEM_PATTERN.findall(body)
    return [json.dumps(item, ensure_ascii=False) for item in parsed]


def strip_name_echo(text: str) -> str:
    """Remove the config name from any "options" array that repeats it."""
    name_match = _NAME_PATTERN.search(text)
    if not name_match:
        return text
    echoed = name_match.group(1).strip().lower()

    def _strip(match: re.Match) -> str:
        items = _array_items(match.group(1))
        kept = [item for item in items if item.strip("\"'").strip().lower() != echoed]
        if len(kept) == len(items):
            return match.group(0)
        logger.debug(f"Removed echoed name {echoed!r} from options array")
        prefix = match.group(0)[:match.start(1) - match.start(0)]
        return f"{prefix}{', '.join(kept)}]"

    return _OPTIONS_BODY_PATTERN.sub(_strip, text)


# =============================================================================
# PARSE STRATEGIES
# =============================================================================


def repair_incomplete_json(text: str) -> str | None:
    """Try to turn truncated JSON into parseable JSON.

    Closes an unterminated string, drops a dangling key or trailing comma,
    appends closers for every open bracket/brace and strips trailing commas.
    Returns the repaired text, or None if it still does not parse.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    fixed = text
    if in_string:
        if escaped:
            fixed = fixed[:-1]
        fixed += '"'

    fixed = _DANGLING_KEY_PATTERN.sub("", fixed.rstrip())
    if stack and stack[-1] == "}":
        fixed = _DANGLING_OBJECT_KEY_PATTERN.sub(r"\1", fixed)
    fixed = fixed.rstrip().rstrip(",")
    fixed += "".join(reversed(stack))
    fixed = _TRAILING_COMMA_PATTERN.sub(r"\1", fixed)

    try:
        json.loads(fixed)
    except ValueError:
        return None
    return fixed


def _parse_direct(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _parse_repaired(text: str) -> Any:
    fixed = repair_incomplete_json(text)
    if fixed is None:
        return None
    logger.debug("Parsed JSON after repairing truncated output")
    return json.loads(fixed)


PARSE_STRATEGIES: tuple[ParseStrategy, ...] = (_parse_direct, _parse_repaired)


def _run_parse_strategies(text: str) -> Any:
    for strategy in PARSE_STRATEGIES:
        parsed = strategy(text)
        if parsed is not None:
            return parsed
    return None


# =============================================================================
# OUTPUT VALIDATION
# =============================================================================


def _clean_config_options(raw: Any, config_name: str) -> list[str]:
    if not isinstance(raw, list):
        return []
    options = []
    for opt in raw:
        if not isinstance(opt, str):
            continue
        opt = opt.strip()
        if 0 < len(opt) < MAX_OPTION_LENGTH and opt.lower() != config_name.lower():
            options.append(opt)
    return options[:MAX_CONFIG_OPTIONS]


def _clean_key_options(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [opt.strip() for opt in raw if isinstance(opt, str) and opt.strip()][:MAX_KEY_OPTIONS]


def _to_record(raw: Any) -> SpecificationRecord | None:
    if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
        return None
    options = raw.get("options")
    if not isinstance(options, list):
        options = []
    return SpecificationRecord(raw["name"], [o for o in options if isinstance(o, str)])


def validate_spec_bundle(parsed: Any) -> ConfigKeySet | None:
    """Normalize a parsed object into a capped :class:`ConfigKeySet`.

    Returns None unless ``parsed`` is a dict with a "config" or "keys" entry.
    """
    if not isinstance(parsed, dict):
        return None
    if "config" not in parsed and "keys" not in parsed:
        return None

    bundle = ConfigKeySet()
    config_name = ""
    raw_config = parsed.get("config")
    if isinstance(raw_config, dict) and isinstance(raw_config.get("name"), str) and raw_config["name"].strip():
        config_name = raw_config["name"].strip()
        bundle.config = SpecificationRecord(config_name, _clean_config_options(raw_config.get("options"), config_name))

    raw_keys = parsed.get("keys")
    if isinstance(raw_keys, list):
        for raw in raw_keys:
            if len(bundle.keys) >= MAX_KEYS:
                break
            if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
                continue
            name = raw["name"].strip()
            if not name or name == config_name:
                continue
            options = _clean_key_options(raw.get("options"))
            if options:
                bundle.keys.append(SpecificationRecord(name, options))

    raw_buyers = parsed.get("buyers")
    if isinstance(raw_buyers, list):
        for raw in raw_buyers[:MAX_BUYERS]:
            record = _to_record(raw)
            if record is not None:
                bundle.buyers.append(record)

    return bundle


# =============================================================================
# MANUAL EXTRACTION
# =============================================================================


def _guess_config_name(text: str) -> str:
    match = _NAME_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    for guess in _CONFIG_NAME_GUESSES:
        if guess in text:
            return guess
    return _DEFAULT_CONFIG_NAME


def _quoted_values(text: str) -> list[str]:
    return [q.strip() for q in _QUOTED_PATTERN.findall(text) if q.strip()]


def _extract_keys(text: str, config_name: str) -> list[SpecificationRecord]:
    keys: list[SpecificationRecord] = []
    for label, pattern in _KEY_PATTERNS:
        if len(keys) >= MAX_KEYS:
            break
        match = pattern.search(text)
        if not match:
            continue
        options = _quoted_values(match.group(1))
        if options and label != config_name:
            keys.append(SpecificationRecord(label, options[:MAX_KEY_OPTIONS]))
    return keys


def extract_manually(text: str) -> ConfigKeySet | None:
    """Pull a config and key specs out of text that is not valid JSON."""
    config_name = _guess_config_name(text)
    name_lower = config_name.lower()
    options: list[str] = []

    def _add(opt: str) -> None:
        if opt and opt.lower() != name_lower and opt not in options:
            options.append(opt)

    for match in _OPTIONS_NONEMPTY_PATTERN.finditer(text):
        for opt in _quoted_values(match.group(1)):
            _add(opt)

    # Still short: accept any short quoted string that is not JSON structure
    if len(options) < MAX_CONFIG_OPTIONS:
        for candidate in _quoted_values(text):
            if not MANUAL_OPTION_MIN_LENGTH < len(candidate) < MANUAL_OPTION_MAX_LENGTH:
                continue
            if _STRUCTURAL_CHARS_PATTERN.search(candidate):
                continue
            lower = candidate.lower()
            if any(word in lower for word in _STRUCTURAL_WORDS):
                continue
            _add(candidate)

    options = options[:MAX_CONFIG_OPTIONS]
    keys = _extract_keys(text, config_name)

    if not options and not keys:
        return None
    config = SpecificationRecord(config_name, options) if options else None
    logger.debug(f"Manual extraction: config={config_name!r} ({len(options)} options), {len(keys)} keys")
    return ConfigKeySet(config=config, keys=keys)


# =============================================================================
# PIPELINE
# =============================================================================


def recover_json_value(text: str) -> Any | None:
    """Recover any JSON value (object or array) from model text, unvalidated."""
    if not text or not text.strip():
        return None
    return _run_parse_strategies(clean_model_text(text))


def recover_spec_bundle(text: str) -> ConfigKeySet | None:
    """Recover a config/keys/buyers bundle from model text."""
    if not text or not text.strip():
        return None
    cleaned = strip_name_echo(clean_model_text(text))

    parsed = _run_parse_strategies(cleaned)
    if parsed is not None:
        return validate_spec_bundle(parsed)

    logger.debug("JSON parsing failed, falling back to manual extraction")
    return extract_manually(cleaned)


def extract_json_value(response: Any) -> Any | None:
    """Structured payload if the response carries one, else JSON recovered from its text."""
    payload = structured_payload(response)
    if payload is not None:
        return payload
    text = extract_raw_text(response)
    if not text:
        logger.warning("Model response has no text")
        return None
    return recover_json_value(text)


def extract_spec_bundle(response: Any) -> ConfigKeySet | None:
    """Recover a :class:`ConfigKeySet` from a raw model response; None if nothing usable."""
    payload = structured_payload(response)
    if payload is not None:
        return validate_spec_bundle(payload)

    text = extract_raw_text(response)
    if not text:
        logger.warning("Model response has no text")
        return None

    logger.debug(f"Recovering spec bundle from {len(text)} chars of model output")
    bundle = recover_spec_bundle(text)
    if bundle is None:
        logger.warning("Could not recover a spec bundle from model output")
    return bundle
