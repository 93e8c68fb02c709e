"""StringProc extraction, addressing and recovery.

A StringProc is a room navigation value of the form ``";e <ruby code>"``.
Each occurrence gets two addresses that depend only on
``(kind, from_room, to_room)``:

* the tree path ``/rooms/<from>/<kind>/stringproc-<to>.rb`` written into
  room envelopes by a git pass;
* the bundle path ``<kind>/room-<from>-to-<to>.rb`` used by bundle builds,
  referenced from the room as
  ``;e Cartographer.evaluate_script('<bundle path>')``.

When a bundle build finds a tree path whose file is gone, the code can be
recovered from a source mapdb (``FallbackSource``) that still carries the
raw StringProc.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from cartograph.errors import MissingScriptError, UnsafeScriptKeyError
from cartograph.file_handler import read_file_with_encoding, read_json
from cartograph.schema import is_safe_destination

from .models import LookupStatus, ScriptKind

logger = logging.getLogger(__name__)

SENTINEL = ";e"
TREE_PREFIX = "/rooms/"
SCRIPT_SUFFIX = ".rb"


def is_embedded(value: Any) -> bool:
    """True for a raw ``;e`` StringProc value."""
    return isinstance(value, str) and value.startswith(SENTINEL)


def is_tree_reference(value: Any) -> bool:
    """True for a value already rewritten to a tree path."""
    return (
        isinstance(value, str)
        and value.startswith(TREE_PREFIX)
        and value.endswith(SCRIPT_SUFFIX)
    )


class ScriptReference(BaseModel):
    """One StringProc occurrence.

    Attributes:
        kind: Field the StringProc lives in.
        from_room: Id of the room that owns the field.
        to_room: Destination key inside the field.
        code: Ruby source without the sentinel and surrounding whitespace.
    """

    kind: ScriptKind
    from_room: str
    to_room: str
    code: str

    model_config = {"frozen": True}

    @classmethod
    def from_embedded(
        cls, kind: ScriptKind, value: str, from_room: str, to_room: str
    ) -> ScriptReference:
        return cls(
            kind=kind,
            from_room=from_room,
            to_room=to_room,
            code=value[len(SENTINEL):].strip(),
        )

    @property
    def tree_path(self) -> str:
        return f"/rooms/{self.from_room}/{self.kind.value}/stringproc-{self.to_room}.rb"

    @property
    def bundle_path(self) -> str:
        return f"{self.kind.value}/room-{self.from_room}-to-{self.to_room}.rb"

    @property
    def bundle_reference(self) -> str:
        return f"{SENTINEL} Cartographer.evaluate_script('{self.bundle_path}')"


class ScriptLookup(BaseModel):
    """Result of ``FallbackSource.recover()``."""

    status: LookupStatus
    reference: ScriptReference | None = None

    model_config = {"frozen": True}

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND


class FallbackSource:
    """A monolithic mapdb consulted for StringProcs missing from the tree.

    The file is read once, on first use, and indexed by room id.  A file
    that is missing, not JSON, or not an array makes every lookup return
    ``MALFORMED_SOURCE``.

    Args:
        path: Path to the source ``map.json``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._rooms: dict[str, dict] | None = None
        self._malformed = False

    def _index(self) -> dict[str, dict]:
        if self._rooms is not None:
            return self._rooms
        self._rooms = {}
        try:
            data = read_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Fallback mapdb %s unusable: %s", self.path, exc)
            self._malformed = True
            return self._rooms
        if not isinstance(data, list):
            logger.warning("Fallback mapdb %s is not an array", self.path)
            self._malformed = True
            return self._rooms
        for room in data:
            if isinstance(room, dict) and "id" in room:
                self._rooms[str(room["id"])] = room
        logger.debug(
            "Indexed %d rooms from fallback mapdb %s",
            len(self._rooms),
            self.path,
        )
        return self._rooms

    def recover(
        self, kind: ScriptKind, from_room: str, to_room: str
    ) -> ScriptLookup:
        """Look up the current raw StringProc for ``kind[to_room]`` of *from_room*."""
        rooms = self._index()
        if self._malformed:
            return ScriptLookup(status=LookupStatus.MALFORMED_SOURCE)

        room = rooms.get(str(from_room))
        field = room.get(kind.value) if room else None
        value = field.get(str(to_room)) if isinstance(field, dict) else None
        if not is_embedded(value):
            return ScriptLookup(status=LookupStatus.NOT_FOUND)

        logger.info(
            "Recovered %s %s -> %s from %s",
            kind.value,
            from_room,
            to_room,
            self.path,
        )
        return ScriptLookup(
            status=LookupStatus.FOUND,
            reference=ScriptReference.from_embedded(
                kind, value, str(from_room), str(to_room)
            ),
        )


def from_tree_path(
    kind: ScriptKind,
    path: str,
    from_room: str,
    to_room: str,
    tree_root: Path,
    fallback: FallbackSource | None = None,
) -> ScriptReference | None:
    """
    Load a StringProc that a git pass already moved into the tree.

    Returns:
        The reference, or ``None`` when the file is missing and there is no
        fallback source to recover from.

    Raises:
        MissingScriptError: The file is missing and *fallback* cannot
            supply the code.
    """
    full_path = Path(tree_root) / path.lstrip("/")
    if full_path.is_file():
        content, _ = read_file_with_encoding(full_path)
        return ScriptReference(
            kind=kind,
            from_room=from_room,
            to_room=to_room,
            code=content.strip(),
        )

    if fallback is None:
        logger.debug("No StringProc file at %s; leaving reference", path)
        return None

    lookup = fallback.recover(kind, from_room, to_room)
    if lookup.found and lookup.reference is not None:
        return lookup.reference
    raise MissingScriptError(path)


def extract_scripts(
    room: dict,
    bundle: bool = False,
    tree_root: Path | None = None,
    fallback: FallbackSource | None = None,
) -> list[ScriptReference]:
    """
    Rewrite every StringProc of *room* in place and return the references.

    Raw ``;e`` values become tree paths, or bundle references when *bundle*
    is set.  In bundle mode with a *tree_root*, tree paths are also
    resolved back to code and rewritten to bundle references.  ``wayto``
    is processed before ``timeto``.

    Raises:
        MissingScriptError: See ``from_tree_path``.
        UnsafeScriptKeyError: A StringProc sits under a key that is not a
            plain file name component.
    """
    from_room = str(room["id"])
    references: list[ScriptReference] = []
    for kind in ScriptKind:
        field = room.get(kind.value)
        if not isinstance(field, dict):
            continue
        for to_room, value in list(field.items()):
            scripted = is_embedded(value) or is_tree_reference(value)
            if scripted and not is_safe_destination(to_room):
                raise UnsafeScriptKeyError(from_room, to_room)
            if is_embedded(value):
                ref = ScriptReference.from_embedded(
                    kind, value, from_room, to_room
                )
            elif (
                bundle
                and tree_root is not None
                and is_tree_reference(value)
            ):
                ref = from_tree_path(
                    kind, value, from_room, to_room, tree_root, fallback
                )
                if ref is None:
                    continue
            else:
                continue
            field[to_room] = (
                ref.bundle_reference if bundle else ref.tree_path
            )
            references.append(ref)
    return references
