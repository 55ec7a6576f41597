"""Central configuration loader for the Spec Forge discovery and specification service."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent
SCHEMAS_DIR = PROJECT_ROOT / "config" / "schemas"
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(PROJECT_ROOT / "output")))

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Schema file paths
PROJECT_STATE_SCHEMA = SCHEMAS_DIR / "project_state.schema.json"
SUGGESTION_SCHEMA = SCHEMAS_DIR / "suggestion.schema.json"
CLARITY_SCHEMA = SCHEMAS_DIR / "clarity.schema.json"

# Project phase order (for transition validation)
PHASE_ORDER = [
    "discover",
    "define",
    "architect",
    "specify",
    "deliver",
]

# Phases in which the discovery interview asks questions
DISCOVERY_PHASES = PHASE_ORDER[:3]

PHASE_LABELS = {
    "discover": "Discover",
    "define": "Define",
    "architect": "Architect",
    "specify": "Specify",
    "deliver": "Deliver",
}

# Complexity tiers, fixed at project creation
COMPLEXITY_LEVELS = ["simple", "moderate", "complex"]
DEFAULT_COMPLEXITY = "moderate"

# Validation policy
TOLLGATE_WEIGHTS = {
    "completeness": 0.60,
    "production": 0.40,
}
PASS_THRESHOLD = 70
WEASEL_DENSITY_LIMIT = 5.0  # occurrences per 1000 words
CLARITY_MIN_WORDS = 300
CLARITY_EXCERPT_CHARS = 2000

# LLM configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
LLM_SPEC_MAX_TOKENS = int(os.getenv("LLM_SPEC_MAX_TOKENS", "16000"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_ENABLED = os.getenv("LLM_ENABLED", "true").lower() in ("true", "1", "yes")
