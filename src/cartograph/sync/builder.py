"""Inverse pass: per-room tree back into a monolithic mapdb.

Two output modes:

* standard -- one JSON array of the room bodies exactly as stored, so
  StringProcs stay as tree paths;
* bundle -- a directory with ``mapdb.json`` whose StringProcs call
  ``Cartographer.evaluate_script`` plus ``stringprocs/wayto/`` and
  ``stringprocs/timeto/`` holding the code, ready for distribution.

Rooms are keyed by id (a later envelope with the same id replaces an
earlier one) and written in ascending id order.  A room that cannot be
read or resolved is left out and reported; it never stops the build.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cartograph.core.async_utils import gather_limited, run_sync
from cartograph.errors import BuildError, CartographError
from cartograph.file_handler import read_json, write_file, write_json

from .models import BuildResult, OperationError, ScriptKind
from .room import RoomRecord
from .script import FallbackSource, ScriptReference

logger = logging.getLogger(__name__)

ENVELOPE_NAME = "room.json"
BUNDLE_MAPDB = "mapdb.json"
BUNDLE_SCRIPTS = "stringprocs"


class TreeBuilder:
    """Rebuild a monolithic mapdb from a tree of room envelopes.

    Args:
        tree_root: Directory containing ``rooms/<id>/room.json``.
        source: Optional monolithic mapdb used to recover StringProcs whose
            files are missing from the tree (bundle builds only).
        max_parallel_writes: Concurrent bundle file writes.
    """

    def __init__(
        self,
        tree_root: Path | str,
        source: Path | str | None = None,
        max_parallel_writes: int = 32,
    ) -> None:
        self.tree_root = Path(tree_root)
        self.fallback = FallbackSource(source) if source else None
        self.max_parallel_writes = max_parallel_writes

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find_envelopes(self) -> list[Path]:
        """Return every ``room.json`` below the tree root.

        Directory entries are visited in sorted order.  Subdirectories that
        cannot be listed are skipped.

        Raises:
            BuildError: The tree root itself is missing or not a directory.
        """
        if not self.tree_root.is_dir():
            raise BuildError(f"Input directory not found: {self.tree_root}")

        found: list[Path] = []
        self._scan(self.tree_root, found)
        logger.info("Found %d room files in %s", len(found), self.tree_root)
        return found

    def _scan(self, directory: Path, found: list[Path]) -> None:
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Skipping unreadable directory %s: %s", directory, exc)
            return
        for entry in entries:
            if entry.is_dir():
                self._scan(entry, found)
            elif entry.is_file() and entry.name == ENVELOPE_NAME:
                found.append(entry)

    @staticmethod
    def _read_room(path: Path) -> dict:
        envelope = read_json(path)
        room = envelope.get("room") if isinstance(envelope, dict) else None
        if not isinstance(room, dict):
            raise ValueError("envelope has no room body")
        room_id = room.get("id")
        if not isinstance(room_id, int) or isinstance(room_id, bool):
            raise ValueError(f"room id must be an integer, got {room_id!r}")
        return room

    @staticmethod
    def _error(exc: Exception, path: Path) -> OperationError:
        logger.debug("Failed to process %s: %s", path, exc)
        return OperationError(
            err=f"Failed to process room file: {exc}", file=str(path)
        )

    # ------------------------------------------------------------------
    # Standard build
    # ------------------------------------------------------------------

    def build_standard(self, output_file: Path | str) -> BuildResult:
        """Write the stored room bodies to *output_file* as one array.

        Raises:
            BuildError: The tree root is missing or the output cannot be
                written.
        """
        rooms: dict[int, dict] = {}
        errors: list[OperationError] = []

        for path in self.find_envelopes():
            try:
                room = self._read_room(path)
            except (OSError, ValueError) as exc:
                errors.append(self._error(exc, path))
                continue
            rooms[room["id"]] = room

        output = Path(output_file)
        ordered = [rooms[room_id] for room_id in sorted(rooms)]
        try:
            write_json(output, ordered)
        except OSError as exc:
            raise BuildError(f"Standard build failed: {exc}") from exc

        logger.info("Built %d rooms to %s", len(ordered), output)
        return BuildResult(
            rooms_processed=len(ordered), errors=errors, output=str(output)
        )

    # ------------------------------------------------------------------
    # Bundle build
    # ------------------------------------------------------------------

    async def build_bundle(self, output_dir: Path | str) -> BuildResult:
        """Write ``mapdb.json`` and the ``stringprocs/`` tree to *output_dir*.

        Every tree path is resolved to code (from the tree, or from the
        source mapdb when the file is gone) and replaced by a bundle
        reference.

        Raises:
            BuildError: The tree root is missing or the output cannot be
                written.
        """
        records: dict[int, RoomRecord] = {}
        errors: list[OperationError] = []

        for path in self.find_envelopes():
            try:
                room = self._read_room(path)
                record = await run_sync(
                    RoomRecord.create,
                    room,
                    bundle=True,
                    tree_root=self.tree_root,
                    fallback=self.fallback,
                )
            except (CartographError, OSError, ValueError) as exc:
                errors.append(self._error(exc, path))
                continue
            records[record.id] = record

        ordered = [records[room_id] for room_id in sorted(records)]
        scripts: list[ScriptReference] = [
            ref for record in ordered for ref in record.scripts
        ]

        output = Path(output_dir)
        scripts_dir = output / BUNDLE_SCRIPTS
        try:
            for kind in ScriptKind:
                (scripts_dir / kind.value).mkdir(parents=True, exist_ok=True)
            await run_sync(
                write_json, output / BUNDLE_MAPDB, [r.room for r in ordered]
            )
            await gather_limited(
                [
                    (write_file, (scripts_dir / ref.bundle_path, ref.code))
                    for ref in scripts
                ],
                self.max_parallel_writes,
            )
        except OSError as exc:
            raise BuildError(f"Bundle build failed: {exc}") from exc

        logger.info(
            "Built %d rooms and %d StringProcs to %s",
            len(ordered),
            len(scripts),
            output,
        )
        return BuildResult(
            rooms_processed=len(ordered),
            errors=errors,
            output=str(output / BUNDLE_MAPDB),
            scripts_written=len(scripts),
        )

