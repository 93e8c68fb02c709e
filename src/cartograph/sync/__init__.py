"""Mapdb round-trip engine.

Moves a Lich mapdb between its monolithic JSON form and a per-room file
tree suited to git.

Architecture
------------
A git pass hashes every room (SHA-256 over canonical JSON) and compares it
with the checksum stored in ``rooms/<id>/room.json``.  Only missing and
stale rooms are written.  Embedded StringProcs (``";e <ruby>"``) are lifted
into ``.rb`` files next to the envelope and formatted in batches by an
external formatter.  A build reverses the pass, optionally bundling the
code for distribution.

Modules:

- ``engine``   -- ``SyncEngine``: runs a git pass.
- ``builder``  -- ``TreeBuilder``: rebuilds a mapdb from the tree.
- ``room``     -- ``RoomRecord``: canonical room, checksum, envelope.
- ``script``   -- ``ScriptReference``, ``FallbackSource``: StringProc
  extraction, addressing and recovery.
- ``batch``    -- ``ScriptFormatBatch``: batched formatter invocation.
- ``models``   -- ``Operations``, ``BuildResult``, ``Envelope`` and enums.
- ``reporter`` -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from cartograph.core.project import Project
    from cartograph.sync import SyncEngine, format_operations
    from cartograph.validators import validate_mapdb

    project = Project("gemstone", output_dir="mapdb-git")
    result = validate_mapdb(project.map_file)
    operations = await SyncEngine(project).run(result.rooms, result.errors)
    print(format_operations(operations))
"""

from .batch import ScriptFormatBatch
from .builder import TreeBuilder
from .engine import SyncEngine
from .models import (
    BatchInfo,
    BuildResult,
    Envelope,
    LookupStatus,
    OperationError,
    Operations,
    RoomState,
    ScriptKind,
)
from .reporter import (
    format_build_result,
    format_error_table,
    format_operations,
    report_to_json,
)
from .room import RoomRecord
from .script import FallbackSource, ScriptLookup, ScriptReference

__all__ = [
    "BatchInfo",
    "BuildResult",
    "Envelope",
    "FallbackSource",
    "LookupStatus",
    "OperationError",
    "Operations",
    "RoomRecord",
    "RoomState",
    "ScriptFormatBatch",
    "ScriptKind",
    "ScriptLookup",
    "ScriptReference",
    "SyncEngine",
    "TreeBuilder",
    "format_build_result",
    "format_error_table",
    "format_operations",
    "report_to_json",
]
