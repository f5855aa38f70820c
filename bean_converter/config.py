"""Configuration constants and .env loading.

WHY: Every tunable of the engine lives here as a plain module-level
value: the metadata keys that carry tags, the arena sizes, and the
defaults used by convert() and the casting helpers. Deployments change
them through the environment, never by editing engine code.

HOW: python-dotenv loads the .env file on import. Constants are read
with os.getenv() and fall back to module-level defaults. Integer
settings go through _int_setting(), which fails loudly on bad input.

RULES:
- TAG_KEY names the dataclass metadata entry holding a struct tag
- EMBED_KEY names the metadata entry marking an embedded field
- Arena sizing must be positive integers
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _int_setting(name: str, default: int) -> int:
    """Read a positive integer setting from the environment.

    WHY: A typo in an arena size should stop the program with a clear
    message instead of surfacing later as an obscure TypeError.

    RULES:
    - Missing or blank → default
    - Non-integer or < 1 → ValueError naming the variable
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            "{} must be an integer, got {!r}.".format(name, raw)
        ) from None
    if value < 1:
        raise ValueError("{} must be at least 1, got {}.".format(name, value))
    return value


# ---------------------------------------------------------------------------
# Struct tag conventions
# ---------------------------------------------------------------------------

TAG_KEY = os.getenv("BEAN_TAG_KEY", "json")
"""Metadata key read from dataclass fields, e.g. field(metadata={"json": "id"})."""

EMBED_KEY = os.getenv("BEAN_EMBED_KEY", "embed")
"""Metadata key marking a field whose record type is embedded (promoted)."""

# ---------------------------------------------------------------------------
# Arena sizing
# ---------------------------------------------------------------------------

ARENA_INITIAL_CAPACITY = _int_setting("BEAN_ARENA_CAPACITY", 256)
ARENA_POOL_SIZE = _int_setting("BEAN_ARENA_POOL_SIZE", 32)

# ---------------------------------------------------------------------------
# Encoding and casting defaults
# ---------------------------------------------------------------------------

DEFAULT_ENCODING = os.getenv("BEAN_DEFAULT_ENCODING", "fast")
DEFAULT_TIME_FORMAT = os.getenv("BEAN_TIME_FORMAT", "%Y-%m-%d %H:%M:%S %z")
LOG_LEVEL = os.getenv("BEAN_LOG_LEVEL", "WARNING").upper()
