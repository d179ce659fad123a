"""Instruction text decoding.

hCaptcha obfuscates prompt text by swapping Latin letters for visually
identical Cyrillic/Greek code points. ``normalize`` maps them back so the
prompt can be parsed into a model label.
"""

import re
from types import MappingProxyType

# 4-hex-digit code point -> Latin look-alike
CONFUSABLES = MappingProxyType({
    "0430": "a",
    "0441": "c",
    "0501": "d",
    "0065": "e",
    "0435": "e",
    "04bb": "h",
    "0069": "i",
    "0456": "i",
    "0458": "j",
    "03f3": "j",
    "04cf": "l",
    "03bf": "o",
    "043e": "o",
    "0440": "p",
    "0455": "s",
    "0445": "x",
    "0443": "y",
    "0335": "-",
})

# Prompt boilerplate stripped before the target noun (English UI only)
_PROMPT_PREFIXES = (
    "Please click each image containing",
    "Please click on all images containing",
    "Please click on all images of",
    "Select all images containing",
)
_PREFIX_RE = re.compile(
    "|".join(re.escape(p) for p in _PROMPT_PREFIXES), re.IGNORECASE
)
_ARTICLE_RE = re.compile(r"^(a|an)\s+", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Replace confusable code points with their Latin equivalents."""
    return "".join(CONFUSABLES.get(f"{ord(ch):04x}", ch) for ch in text)


def clean_prompt(text: str | None) -> str | None:
    """Collapse whitespace and decode a raw prompt. Empty prompts give None."""
    if not text:
        return None
    text = _WS_RE.sub(" ", text).strip()
    if not text:
        return None
    return normalize(text)


def parse_label(instruction: str) -> str:
    """Extract the classifier label from a prompt.

    "Please click each image containing a fire hydrant" -> "fire_hydrant"
    """
    label = _PREFIX_RE.sub("", normalize(instruction))
    label = _ARTICLE_RE.sub("", label.strip())
    return _WS_RE.sub("_", label).lower()
