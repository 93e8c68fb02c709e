"""Forward sync pass: monolithic rooms into the per-room tree.

The ``SyncEngine`` walks the loaded rooms in source order and:

1. Classifies each room against its envelope (missing, stale, ok).
2. Writes the envelope of every missing or stale room and queues its
   StringProcs on a batch owned by this pass.
3. Flushes the batch once, which writes and formats every queued script.
4. Returns ``Operations`` with the counters and all errors, upstream
   validation errors first.

Error handling is per-room: a single failed write does not abort the run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from cartograph.config_schema import FormatterConfig
from cartograph.core.async_utils import run_sync

from .batch import ProgressCallback, ScriptFormatBatch
from .models import OperationError, Operations, RoomState
from .room import RoomRecord

if TYPE_CHECKING:
    from cartograph.core.project import Project
    from cartograph.validators import RoomValidationError

logger = logging.getLogger(__name__)

RoomProgressCallback = Callable[[int, int, Operations], None]


class SyncEngine:
    """Run one git pass over a tree.

    Args:
        tree: Project whose tree root receives the envelopes.
        settings: Formatter settings for the StringProc batch.
        on_progress: Called after each room as ``(done, total, operations)``.
        on_format_progress: Passed to ``ScriptFormatBatch.process``.
    """

    def __init__(
        self,
        tree: Project,
        settings: FormatterConfig | None = None,
        on_progress: RoomProgressCallback | None = None,
        on_format_progress: ProgressCallback | None = None,
    ) -> None:
        self.tree = tree
        self.settings = settings or FormatterConfig()
        self.on_progress = on_progress
        self.on_format_progress = on_format_progress

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        rooms: Sequence[RoomRecord],
        validation_errors: Iterable[RoomValidationError] = (),
    ) -> Operations:
        """Bring the tree up to date with *rooms*.

        Args:
            rooms: Validated rooms in source order.
            validation_errors: Rooms rejected upstream; each becomes an
                error entry keyed by the tree path ``/rooms/<id>/room.json``.

        Returns:
            ``Operations`` where every room counts once as created,
            updated or skipped.
        """
        operations = Operations(
            errors=[
                OperationError(err=e.error, file=e.file)
                for e in validation_errors
            ]
        )
        batch = ScriptFormatBatch(self.tree.tree_root, self.settings)
        total = len(rooms)

        for room in rooms:
            await self._upsert(room, batch, operations)
            if self.on_progress:
                self.on_progress(operations.processed, total, operations)

        info = batch.batch_info()
        logger.info(
            "Rooms done (%s); flushing %d StringProcs",
            operations.summary(),
            info.total,
        )
        operations.errors.extend(
            await batch.process(self.on_format_progress)
        )
        return operations

    # ------------------------------------------------------------------
    # Per-room sync
    # ------------------------------------------------------------------

    async def _upsert(
        self,
        room: RoomRecord,
        batch: ScriptFormatBatch,
        operations: Operations,
    ) -> None:
        state = await run_sync(room.classify, self.tree)
        if state == RoomState.OK:
            operations.record(state)
            return

        try:
            await room.write(self.tree, batch)
        except OSError as exc:
            logger.error("Error writing room %s: %s", room.id, exc)
            operations.errors.append(
                OperationError(err=str(exc), file=room.file)
            )
            operations.skipped += 1
            return

        logger.debug("Room %s %s", room.id, state.value)
        operations.record(state)
