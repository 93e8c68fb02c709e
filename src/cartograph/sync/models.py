"""Pydantic models for the mapdb sync engine.

Defines the core data contracts used across all sync modules:

- ``ScriptKind``: Navigation field a StringProc lives in.
- ``RoomState``: Disk classification of one room.
- ``LookupStatus``: Outcome of resolving a StringProc from disk or source.
- ``Envelope``: On-disk wrapper pairing a checksum with a room body.
- ``OperationError``: One ``{err, file}`` entry in a pass result.
- ``Operations``: Counters and errors of a git pass.
- ``BuildResult``: Outcome of rebuilding a monolithic mapdb from a tree.
- ``BatchInfo``: Size of a queued formatter run.

``Envelope``, ``OperationError`` and ``BatchInfo`` are frozen.
``Operations`` is filled in while a pass runs and handed back at the end.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ScriptKind(str, Enum):
    """Room field that can carry an embedded StringProc."""

    WAYTO = "wayto"
    TIMETO = "timeto"


class RoomState(str, Enum):
    """Classification of a room against the tree."""

    MISSING = "missing"
    STALE = "stale"
    OK = "ok"


class LookupStatus(str, Enum):
    """Outcome of looking up StringProc code outside the room body."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    MALFORMED_SOURCE = "malformed_source"


class Envelope(BaseModel):
    """On-disk room file: ``{"checksum": ..., "room": {...}}``.

    Attributes:
        checksum: Hex digest of the room body as written.
        room: The room body with StringProcs replaced by references.
    """

    checksum: str
    room: dict

    model_config = {"frozen": True}


class OperationError(BaseModel):
    """A single error recorded during a pass.

    Attributes:
        err: Human readable message (formatter output, validation text, ...).
        file: Tree path or filesystem path the error belongs to.
    """

    err: str
    file: str

    model_config = {"frozen": True}


class Operations(BaseModel):
    """Aggregate result of a git pass.

    Attributes:
        created: Rooms whose envelope did not exist.
        updated: Rooms whose envelope was stale.
        skipped: Rooms already up to date (or that failed to write).
        errors: Validation, write and formatter errors, in that order.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[OperationError] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        """Rooms accounted for so far."""
        return self.created + self.updated + self.skipped

    def record(self, state: RoomState) -> None:
        """Bump the counter that corresponds to *state*."""
        if state == RoomState.MISSING:
            self.created += 1
        elif state == RoomState.STALE:
            self.updated += 1
        else:
            self.skipped += 1

    def summary(self) -> str:
        """One-line summary in ``key=value`` form."""
        return (
            f"created={self.created} skipped={self.skipped} "
            f"updated={self.updated} errors={len(self.errors)}"
        )


class BuildResult(BaseModel):
    """Outcome of rebuilding a monolithic mapdb from a tree.

    Attributes:
        rooms_processed: Rooms written to the output mapdb.
        errors: Per-room failures keyed by envelope path.
        output: The mapdb file that was written.
        scripts_written: Bundle files written (bundle builds only).
    """

    rooms_processed: int
    errors: list[OperationError] = Field(default_factory=list)
    output: str
    scripts_written: int = 0

    model_config = {"frozen": True}


class BatchInfo(BaseModel):
    """Size of the formatter work currently queued."""

    total: int
    batches: int
    batch_size: int

    model_config = {"frozen": True}
