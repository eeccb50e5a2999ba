"""Configuration for the specification reconciliation engine."""

import os

# LLM API keys, one per stage (stages fail fast or fall back when missing)
STAGE1_API_KEY = os.getenv("STAGE1_API_KEY", "").strip()
STAGE2_API_KEY = os.getenv("STAGE2_API_KEY", "").strip()
STAGE3_API_KEY = os.getenv("STAGE3_API_KEY", "").strip()

# LLM endpoint
LLM_MODEL = os.getenv("LLM_MODEL", "gemini-2.5-flash")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
LLM_REQUEST_TIMEOUT = float(os.getenv("LLM_REQUEST_TIMEOUT", "60"))

# Response MIME types understood by the LLM endpoint
MIME_JSON = "application/json"
MIME_TEXT = "text/plain"

# Generation parameters per stage: (temperature, max output tokens, response MIME type)
STAGE1_GENERATION = (0.4, 4096, MIME_JSON)
AUDIT_GENERATION = (0.3, 4096, MIME_JSON)
STAGE2_GENERATION = (0.3, 4000, MIME_TEXT)
STAGE3_GENERATION = (0.1, 4096, MIME_TEXT)
ENHANCE_GENERATION = (0.2, 2048, MIME_JSON)

# Bundle caps
MAX_CONFIG_OPTIONS = 8
MAX_KEY_OPTIONS = 6
MAX_KEYS = 3
MAX_BUYERS = 2
MAX_BUYER_OPTIONS = 8

# Output validation: config options must be shorter than this
MAX_OPTION_LENGTH = 50

# Manual extraction: quoted strings accepted as options when MIN < len < MAX
MANUAL_OPTION_MIN_LENGTH = 1
MANUAL_OPTION_MAX_LENGTH = 30

# Measurements closer than this (in mm) are the same value
MEASUREMENT_EPSILON_MM = 0.01

# Characters of each fetched page included in the Stage 2 prompt
PAGE_EXCERPT_CHARS = 1000

# Placeholder emitted for a matched spec with nothing in common
NO_COMMON_OPTIONS = "No common options available"
