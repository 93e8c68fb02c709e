"""Canonical room entity and its on-disk envelope.

A ``RoomRecord`` is built once per load from a copy of a validated room.
Building it rewrites embedded StringProcs to references (see
``cartograph.sync.script``) and fixes the room's checksum:

* canonical form -- ``json.dumps(sort_keys=True)`` with compact
  separators, so key order never matters;
* checksum -- SHA-256 hex digest of the canonical form.

The checksum covers the rewritten room body only.  Script file contents
are not part of it: the formatter rewrites those files after every write,
so a room is only considered stale when one of its script files is gone.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cartograph.file_handler import dump_json, write_file_async
from cartograph.schema import RoomSchema

from .models import Envelope, RoomState
from .script import FallbackSource, ScriptReference, extract_scripts

if TYPE_CHECKING:
    from cartograph.core.project import Project

    from .batch import ScriptFormatBatch

logger = logging.getLogger(__name__)


def canonical_json(room: Any) -> str:
    """Key-order independent serialisation used for hashing."""
    return json.dumps(
        room, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


class RoomRecord:
    """One room, ready to be compared against and written to the tree.

    Use ``RoomRecord.create()`` rather than the constructor.

    Attributes:
        room: Room body with StringProcs replaced by references.
        scripts: StringProcs lifted out of ``wayto`` then ``timeto``.
        canonical: Canonical JSON of ``room``.
        checksum: SHA-256 of ``canonical``.
        file: Tree path of the envelope, ``/rooms/<id>/room.json``.
    """

    def __init__(self, room: dict, scripts: list[ScriptReference]) -> None:
        self.room = room
        self.scripts = tuple(scripts)
        self.canonical = canonical_json(room)
        self.checksum = hashlib.sha256(
            self.canonical.encode("utf-8")
        ).hexdigest()
        self.file = f"/rooms/{room['id']}/room.json"

    @classmethod
    def create(
        cls,
        validated: RoomSchema | dict,
        bundle: bool = False,
        tree_root: Path | None = None,
        fallback: FallbackSource | None = None,
    ) -> RoomRecord:
        """Build a record from a deep copy of *validated*.

        Raises:
            MissingScriptError: Bundle mode only, see
                ``cartograph.sync.script.from_tree_path``.
        """
        if isinstance(validated, RoomSchema):
            room = validated.to_room()
        else:
            room = copy.deepcopy(validated)
        scripts = extract_scripts(
            room, bundle=bundle, tree_root=tree_root, fallback=fallback
        )
        return cls(room, scripts)

    @property
    def id(self) -> int:
        return self.room["id"]

    def __repr__(self) -> str:
        return (
            f"RoomRecord(id={self.id!r}, scripts={len(self.scripts)}, "
            f"checksum={self.checksum[:12]!r})"
        )

    # ------------------------------------------------------------------
    # Disk state
    # ------------------------------------------------------------------

    def classify(self, tree: Project) -> RoomState:
        """Compare this room with its envelope in *tree*.

        Returns:
            ``MISSING`` when there is no envelope, ``STALE`` when the stored
            checksum differs (or the envelope is unreadable) or a script
            file is absent, ``OK`` otherwise.
        """
        if not tree.tree_exists(self.file):
            return RoomState.MISSING

        try:
            disk = tree.tree_read_json(self.file)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable envelope %s: %s", self.file, exc)
            return RoomState.STALE

        stored = disk.get("checksum") if isinstance(disk, dict) else None
        if stored != self.checksum:
            return RoomState.STALE

        for ref in self.scripts:
            if not tree.tree_exists(ref.tree_path):
                logger.debug(
                    "Room %s missing script %s", self.id, ref.tree_path
                )
                return RoomState.STALE

        return RoomState.OK

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_envelope(self) -> Envelope:
        return Envelope(checksum=self.checksum, room=self.room)

    def dumps(self) -> str:
        return dump_json(self.to_envelope().model_dump())

    async def write(self, tree: Project, batch: ScriptFormatBatch) -> None:
        """Write the envelope and queue every script on *batch*."""
        await write_file_async(tree.tree_route(self.file), self.dumps())
        for ref in self.scripts:
            batch.add(ref)
