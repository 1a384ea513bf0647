"""
Text sanitizing and deterministic record identity.
"""

import hashlib
import json
import re

from ..core.config import TEXT_MAX_CHARS

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_text(text, max_chars: int = TEXT_MAX_CHARS) -> str:
    """Strip control characters, trim, and truncate to max_chars.

    Never raises; anything that is not a string sanitizes to "". Applying it
    twice gives the same result as applying it once.
    """
    if not isinstance(text, str):
        return ""
    clean = _CONTROL_CHARS.sub("", text).strip()
    # The cut can expose trailing whitespace
    return clean[:max_chars].rstrip()


def make_record_id(source: str, url: str, published_at: int, text: str) -> str:
    """Stable identity for a record. Callers pass already-sanitized text."""
    payload = json.dumps([source, url or "", published_at, text], ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]
