"""Cache key helpers: file names, blob paths and hashed keys.

Key to path mapping is deterministic: the same key always maps to the same
path. Keys that are not usable as a file name are replaced by a hash.
"""

import hashlib
from pathlib import Path
from typing import Any

from pydantic_core import to_json

from faultcore.core.exceptions import ConfigurationError

CACHE_FILE_SUFFIX = ".cache"

# Invalid on at least one supported file system; applied everywhere so the
# mapping is identical across platforms.
INVALID_FILE_NAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(
    chr(code) for code in range(32)
)

MAX_FILE_NAME_BYTES = 255

_RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


def gen_hash_string(obj: Any) -> str:
    """SHA-256 of the JSON encoding of ``obj`` as lowercase hex.

    Returns:
        64 character hex digest, or an empty string for None
    """
    if obj is None:
        return ""
    return hashlib.sha256(to_json(obj)).hexdigest()


def gen_cache_key(prepend: str, key: str, hash: str | None = None) -> str:
    """Generate a namespaced cache key from a prefix, a key and an optional hash.

    Example:
        >>> gen_cache_key("EmbeddingService", "disk full")[:17]
        'EmbeddingService_'
    """
    suffix = hash or ""
    return f"{prepend}_{gen_hash_string(f'{key}_{suffix}')}"


def has_invalid_file_name_chars(name: str) -> bool:
    """Check whether a string contains characters unusable in a file name."""
    return any(c in INVALID_FILE_NAME_CHARS for c in name)


def is_portable_file_name(name: str) -> bool:
    """Check whether a string can be used unchanged as a file name everywhere.

    Rejects invalid or non-printable characters, reserved device names
    (also with an extension, as in ``CON.txt``) and leading or trailing
    spaces and dots.
    """
    if not name or has_invalid_file_name_chars(name):
        return False
    if not name.isprintable() or name != name.strip(" ."):
        return False
    return name.split(".", 1)[0].upper() not in _RESERVED_NAMES


def sanitize_for_file_system(
    name: str,
    *,
    replacement: str = "_",
    max_length: int = MAX_FILE_NAME_BYTES,
    default_name: str = "unnamed",
) -> str:
    """Make an arbitrary string safe to use as a file name.

    Invalid and control characters are replaced, reserved device names are
    prefixed, leading/trailing spaces and dots are trimmed, repeated
    replacements are collapsed and the result is capped at ``max_length``.
    """
    if not name or not name.strip():
        return default_name

    result = "".join(
        replacement if c in INVALID_FILE_NAME_CHARS or not c.isprintable() else c
        for c in name
    )

    if result.upper() in _RESERVED_NAMES:
        result = f"_{result}"

    result = result.strip(" .")

    doubled = replacement * 2
    while doubled in result:
        result = result.replace(doubled, replacement)

    if not result.strip():
        result = default_name

    return result[:max_length]


def file_system_name(key: str, length: int = 64) -> str:
    """Hashed, file-system-safe name for a key, capped at ``length`` chars."""
    if not key:
        return ""
    return sanitize_for_file_system(gen_hash_string(key))[:length]


def file_path_for_key(key: str, cache_directory: str | Path) -> Path:
    """Resolve the cache file for a key.

    The raw key is used as the file name unless it is not a portable file
    name (see ``is_portable_file_name``) or would be too long, in which case
    its hash is used.

    Raises:
        ValueError: If key or cache_directory is empty
        ConfigurationError: If cache_directory contains a NUL character

    Example:
        >>> file_path_for_key("report", "/tmp/cache")
        PosixPath('/tmp/cache/report.cache')
    """
    if not key:
        raise ValueError("Key cannot be null or empty.")
    if not cache_directory or not str(cache_directory):
        raise ValueError("Cache directory cannot be null or empty.")
    if "\x00" in str(cache_directory):
        raise ConfigurationError(
            "Cache directory contains invalid characters.",
            details={"cache_directory": repr(str(cache_directory))},
        )

    name = key
    too_long = len((key + CACHE_FILE_SUFFIX).encode("utf-8")) > MAX_FILE_NAME_BYTES
    if too_long or not is_portable_file_name(key):
        name = file_system_name(key)
    return Path(cache_directory) / f"{name}{CACHE_FILE_SUFFIX}"


def blob_path_for(key: str, prefix: str = "") -> str:
    """Normalized blob path for a key under ``{prefix}/cache/``.

    Example:
        >>> blob_path_for("snapshot.json", "prod/")
        'prod/cache/snapshot.json'
        >>> blob_path_for("snapshot.json")
        'cache/snapshot.json'
    """
    return f"{prefix.rstrip('/')}/cache/{key}".lstrip("/")
