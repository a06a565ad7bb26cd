"""Best-effort repair of JSON text damaged by common formatting corruption."""

import json
import re

_NORMALIZE_LINE_ENDINGS = re.compile(r"\r\n|\r")
_PROPERTY_STRING = re.compile(r'"([^"]+)"\s*:\s*\n\s*"')
_PROPERTY_NUMBER = re.compile(r'"([^"]+)"\s*:\s*\n\s*(\d+\.?\d*)')
_PROPERTY_LITERAL = re.compile(r'"([^"]+)"\s*:\s*\n\s*(true|false|null)')
_PROPERTY_OBJECT = re.compile(r'"([^"]+)"\s*:\s*\n\s*\{')
_TRAILING_COMMA = re.compile(r",\s*[\n\r]*\s*([\]}])")
_BLANK_LINES = re.compile(r"\n\s*\n")
_SPACES = re.compile(r"[ \t]+")
_COMMA_NEWLINE = re.compile(r",\s*\n")
_PROPERTY_INDENT = re.compile(r'\n\s*("[^"]+":)')


def sanitize_json(text: str) -> str:
    """Apply the regex repair pass to JSON text.

    Fixes inconsistent line endings, property/value pairs split across lines,
    trailing commas and stray whitespace, then removes line breaks.
    """
    sanitized = _NORMALIZE_LINE_ENDINGS.sub("\n", text)
    sanitized = _PROPERTY_STRING.sub(r'"\1": "', sanitized)
    sanitized = _PROPERTY_NUMBER.sub(r'"\1": \2', sanitized)
    sanitized = _PROPERTY_LITERAL.sub(r'"\1": \2', sanitized)
    sanitized = _PROPERTY_OBJECT.sub(r'"\1": {', sanitized)
    sanitized = _TRAILING_COMMA.sub(r"\1", sanitized)
    sanitized = _BLANK_LINES.sub("\n", sanitized)
    sanitized = _SPACES.sub(" ", sanitized)
    sanitized = _COMMA_NEWLINE.sub(", ", sanitized)
    sanitized = _PROPERTY_INDENT.sub(r"\n  \1", sanitized)
    return (
        sanitized.replace("\\r\\n", "")
        .replace("\\n", "")
        .replace('\\"', '"')
        .replace("\r\n", "")
        .replace("\n", "")
        .strip()
    )


def is_valid_json(text: str) -> bool:
    """Check whether text parses as JSON."""
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def repair_json(text: str) -> str:
    """Return text unchanged if it parses, otherwise its sanitized form."""
    if not text or not text.strip():
        return text
    if is_valid_json(text):
        return text
    return sanitize_json(text)
