"""File handler module: encoding-aware read/write and JSON helpers.

Provides the raw file I/O used by the project layer, the sync engine and
the tree builder.  All sync functions are plain blocking calls; async
wrappers compose them via run_sync().
"""

import json
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

from cartograph.core.async_utils import run_sync

# =============================================================================
# Path Validation
# =============================================================================


def validate_input_file(path_str: str) -> Path:
    """Validate and resolve an input file path.

    Args:
        path_str: Path string to an existing file.

    Returns:
        Resolved Path object pointing to the real file.

    Raises:
        ValueError: If path doesn't exist or is not a file.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


def validate_input_dir(path_str: str) -> Path:
    """Validate and resolve an input directory path.

    Raises:
        ValueError: If path doesn't exist or is not a directory.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Directory not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Path is not a directory: {path_str}")
    return resolved


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files, valid UTF-8 input, or when detection
    fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    # The mapdb and generated scripts are UTF-8; only guess for stray files.
    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)


def read_json(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    content, _ = read_file_with_encoding(path)
    return json.loads(content)


def dump_json(data: Any) -> str:
    """Serialise *data* the way every cartograph artefact is written (indent 2)."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def write_json(path: Path, data: Any) -> int:
    """Write *data* as pretty-printed JSON, creating parent directories."""
    return write_file(path, dump_json(data))


# =============================================================================
# Async Wrappers
# =============================================================================


async def write_file_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Async wrapper around write_file()."""
    return await run_sync(write_file, path, content, encoding)
