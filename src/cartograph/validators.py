"""
Room validation for cartograph.

Turns untyped JSON records into canonical rooms and reports failures in a
form that can be printed as a table:

- ``validate_room`` -- one record, raises pydantic ``ValidationError``.
- ``validate_mapdb`` -- a monolithic mapdb file, collects per-room errors.
- ``validate_files`` -- individual envelope (or bare room) files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cartograph.errors import MapdbFormatError
from cartograph.file_handler import read_json
from cartograph.schema import RoomSchema
from cartograph.sync.room import RoomRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(exc: ValidationError) -> str:
    """
    Humanize a pydantic error as ``field.path: message`` items.

    Args:
        exc: The ValidationError raised by ``RoomSchema``.

    Returns:
        ``"Validation error: id: Input should be a valid integer; ..."``
    """
    parts = []
    for issue in exc.errors():
        loc = ".".join(str(p) for p in issue["loc"]) or "room"
        parts.append(f"{loc}: {issue['msg']}")
    return "Validation error: " + "; ".join(parts)


def describe_error(exc: Exception) -> str:
    """Return the printable message for any per-room failure."""
    if isinstance(exc, ValidationError):
        return format_validation_error(exc)
    return str(exc)


def room_identity(data: Any) -> tuple[int | None, str | None]:
    """Best-effort ``(id, first title)`` of a record that may be invalid."""
    if not isinstance(data, dict):
        return (None, None)
    room_id = data.get("id")
    if not isinstance(room_id, int) or isinstance(room_id, bool):
        room_id = None
    title = data.get("title")
    first_title = None
    if isinstance(title, list) and title and isinstance(title[0], str):
        first_title = title[0]
    return (room_id, first_title)


def validate_room(data: Any) -> RoomSchema:
    """
    Validate a single room record.

    Raises:
        ValidationError: If the record does not match ``RoomSchema``.
    """
    return RoomSchema.model_validate(data)


# ---------------------------------------------------------------------------
# Monolithic mapdb
# ---------------------------------------------------------------------------


@dataclass
class RoomValidationError:
    id: int
    title: str
    error: str

    @property
    def file(self) -> str:
        return f"/rooms/{self.id}/room.json"


@dataclass
class ValidationResult:
    rooms: list[RoomRecord] = field(default_factory=list)
    errors: list[RoomValidationError] = field(default_factory=list)


def load_mapdb(path: Path | str) -> list:
    """
    Read a monolithic mapdb file and check that it is an array.

    Raises:
        MapdbFormatError: If the file is unreadable, not JSON, or not an array.
    """
    try:
        rooms = read_json(Path(path))
    except (OSError, json.JSONDecodeError) as exc:
        raise MapdbFormatError(
            f"Failed to read or parse {path}: {exc}"
        ) from exc
    if not isinstance(rooms, list):
        raise MapdbFormatError(
            f"Failed to read or parse {path}: "
            "Invalid mapdb.json format: expected an array of rooms"
        )
    return rooms


def validate_mapdb(path: Path | str) -> ValidationResult:
    """
    Validate every room of a monolithic mapdb.

    Valid rooms become ``RoomRecord``s (with embedded StringProcs already
    rewritten to tree references). Invalid rooms are reported with their
    id (``0`` when unknown) and first title (``"Unknown"`` when unknown).

    Raises:
        MapdbFormatError: If the file cannot be read as an array of rooms.
    """
    result = ValidationResult()
    for pending in load_mapdb(path):
        try:
            result.rooms.append(RoomRecord.create(validate_room(pending)))
        except ValidationError as exc:
            room_id, title = room_identity(pending)
            result.errors.append(
                RoomValidationError(
                    id=room_id or 0,
                    title=title or "Unknown",
                    error=format_validation_error(exc),
                )
            )

    logger.info(
        "Validated %s: %d rooms, %d errors",
        path,
        len(result.rooms),
        len(result.errors),
    )
    return result


# ---------------------------------------------------------------------------
# Individual files
# ---------------------------------------------------------------------------


@dataclass
class FileValidationError:
    file: str
    error: str
    id: int | None = None
    title: str | None = None


@dataclass
class FilesValidationResult:
    valid_files: int = 0
    errors: list[FileValidationError] = field(default_factory=list)
    files: list[str] = field(default_factory=list)


def _room_body(data: Any) -> Any:
    """Unwrap an envelope; bare rooms pass through."""
    if isinstance(data, dict) and data.get("room"):
        return data["room"]
    return data


def validate_files(files: list[str]) -> FilesValidationResult:
    """
    Validate room files one by one.

    Each file may hold an envelope (``{"checksum", "room"}``) or a bare
    room. Unreadable files and invalid rooms are both reported as errors;
    neither stops the remaining files from being checked.
    """
    result = FilesValidationResult(files=list(files))
    for file in files:
        data: Any = None
        try:
            data = _room_body(read_json(Path(file)))
            validate_room(data)
            result.valid_files += 1
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            room_id, title = room_identity(data)
            logger.debug("Invalid room file %s: %s", file, exc)
            result.errors.append(
                FileValidationError(
                    file=file,
                    id=room_id,
                    title=title,
                    error=describe_error(exc),
                )
            )
    return result
