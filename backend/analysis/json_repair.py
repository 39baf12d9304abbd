"""Recover a JSON object from free-form model output.

Model responses wrap the requested JSON in markdown fences, prepend prose,
leave trailing commas or use single quotes. The helpers here get from that
text to a ``dict`` or give up and return None; they never raise.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Keys that identify an analysis object
ANALYSIS_KEYS = ("shortTerm", "longTerm")

_FENCE_RE = re.compile(r"```[a-z]*[ \t]*", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_LINE_BREAKS_RE = re.compile(r"[\r\n\t]+")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_QUOTED_NULL_RE = re.compile(r'"(?:null|undefined)"', re.IGNORECASE)

# Used on the original text when the extracted object is not a usable analysis
_ANCHORED_OBJECT_RE = re.compile(
    r'\{[^{}]*"shortTerm"\s*:\s*\{[^{}]*\}[^{}]*"longTerm"\s*:\s*\{[^{}]*\}.*?\}(?=\s*$|\s*[^{])',
    re.DOTALL,
)


def strip_markdown(text: str) -> str:
    """Remove code fences (any language tag), collapse blank lines and trim."""
    text = _FENCE_RE.sub("", text)
    text = _BLANK_LINES_RE.sub("\n", text)
    return text.strip()


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` substring, or None.

    Braces inside double-quoted strings do not count towards the depth.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def repair_json(text: str) -> str:
    """Apply the syntactic repairs, in order, to a JSON-like string."""
    text = _CONTROL_CHARS_RE.sub(" ", text)
    text = _LINE_BREAKS_RE.sub(" ", text)
    text = _BARE_KEY_RE.sub(r'\1"\2"\3', text)
    text = text.replace("'", '"')
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    text = _QUOTED_NULL_RE.sub("null", text)
    return text


def find_anchored_object(text: str) -> Optional[str]:
    """Find an object holding both ``shortTerm`` and ``longTerm`` sub-objects."""
    match = _ANCHORED_OBJECT_RE.search(text)
    return match.group(0) if match else None


def _loads(candidate: str) -> Optional[Any]:
    # ValueError covers JSONDecodeError and over-long integer literals
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        return None


def _is_analysis_object(value: Any) -> bool:
    return isinstance(value, dict) and any(key in value for key in ANALYSIS_KEYS)


def load_analysis_object(text: str) -> Optional[dict]:
    """Parse model output into a dict carrying ``shortTerm`` and/or ``longTerm``.

    Tries, in order: the extracted object as-is, the extracted object after
    repair, then an anchored regex match on the original text after repair.
    Without a balanced object nothing else is attempted.

    Returns:
        The parsed object, or None when every attempt fails.
    """
    if not text:
        return None

    cleaned = strip_markdown(text)
    candidate = extract_json_object(cleaned)
    if candidate is None:
        logger.warning("No balanced JSON object found in model output")
        return None

    parsed = _loads(candidate)
    if _is_analysis_object(parsed):
        return parsed

    parsed = _loads(repair_json(candidate))
    if _is_analysis_object(parsed):
        logger.info("Parsed model output after JSON repair")
        return parsed

    logger.warning("Extracted JSON object did not parse after repair")

    anchored = find_anchored_object(text)
    if anchored is not None:
        parsed = _loads(repair_json(anchored))
        if _is_analysis_object(parsed):
            logger.info("Parsed model output from anchored fallback match")
            return parsed

    return None
