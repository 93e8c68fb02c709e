"""Batched StringProc formatting.

``ScriptFormatBatch`` collects the ``ScriptReference``s queued while a git
pass writes rooms, then flushes them in one go:

1. Every queued script is written to its tree path (bounded concurrency).
   A script that cannot be written is reported and left out of step 2.
2. The formatter runs once per batch of ``batch_size`` files, from the tree
   root, with tree-relative paths.  Output lines of the form ``<path>:...``
   are attributed to the matching script; anything else is dropped.
3. If a batch invocation fails outright (missing binary, timeout, OS error,
   unexpected exit code) that batch and every later one fall back to one
   invocation per file.

The collector is owned by whoever runs the pass; it is not shared between
passes.
"""

from __future__ import annotations

import logging
import math
import re
import subprocess
from pathlib import Path
from typing import Callable

from cartograph.config_schema import FormatterConfig
from cartograph.core.async_utils import gather_limited, run_sync
from cartograph.errors import FormatterError
from cartograph.file_handler import write_file

from .models import BatchInfo, OperationError
from .script import ScriptReference

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int, int], None]

_LINE_PATH = re.compile(r"^([^:]+):")


def _clean_output(output: str) -> str:
    return output.replace("../", "")


class ScriptFormatBatch:
    """Queue of StringProcs waiting to be written and formatted.

    Args:
        tree_root: Root of the per-room tree; the formatter runs here.
        settings: Formatter command, batch size, timeout, exit codes.
    """

    def __init__(
        self, tree_root: Path, settings: FormatterConfig | None = None
    ) -> None:
        self.tree_root = Path(tree_root)
        self.settings = settings or FormatterConfig()
        self._queue: list[ScriptReference] = []
        self._processing = False

    def __len__(self) -> int:
        return len(self._queue)

    def add(self, ref: ScriptReference) -> None:
        self._queue.append(ref)

    def batch_info(self) -> BatchInfo:
        return self._info_for(len(self._queue))

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    async def process(
        self, on_progress: ProgressCallback | None = None
    ) -> list[OperationError]:
        """Write and format everything queued, then empty the queue.

        Args:
            on_progress: Called as ``(current, total, batch_num, total_batches)``.

        Returns:
            One ``OperationError`` per unwritable script, formatter finding
            or failed file.
            Empty when nothing was queued or a flush is already running.
        """
        if self._processing or not self._queue:
            return []

        self._processing = True
        errors: list[OperationError] = []
        queue = list(self._queue)
        info = self.batch_info()
        notify = on_progress or (lambda *_: None)
        logger.info(
            "Processing %d StringProcs in %d batches",
            info.total,
            info.batches,
        )

        try:
            notify(0, info.total, 0, info.batches)
            written, write_errors = await self._write_all(queue)
            errors.extend(write_errors)

            if not self.settings.enabled:
                logger.info("Formatter disabled; StringProcs written as-is")
            elif written:
                errors.extend(
                    await self._format_all(
                        written, self._info_for(len(written)), notify
                    )
                )

            notify(info.total, info.total, info.batches, info.batches)
        finally:
            self._queue = []
            self._processing = False

        return errors

    async def _write_all(
        self, queue: list[ScriptReference]
    ) -> tuple[list[ScriptReference], list[OperationError]]:
        """Write every queued script; unwritable ones are reported, not formatted."""
        results = await gather_limited(
            [(self._write_one, (ref,)) for ref in queue],
            self.settings.max_parallel_writes,
        )
        written: list[ScriptReference] = []
        errors: list[OperationError] = []
        for ref, error in zip(queue, results):
            if error is None:
                written.append(ref)
            else:
                errors.append(error)
        return written, errors

    def _write_one(self, ref: ScriptReference) -> OperationError | None:
        try:
            write_file(self._route(ref), ref.code)
        except OSError as exc:
            logger.error("Error writing StringProc %s: %s", ref.tree_path, exc)
            return OperationError(err=str(exc), file=ref.tree_path)
        return None

    def _info_for(self, total: int) -> BatchInfo:
        size = self.settings.batch_size
        return BatchInfo(
            total=total, batches=math.ceil(total / size), batch_size=size
        )

    async def _format_all(
        self,
        queue: list[ScriptReference],
        info: BatchInfo,
        notify: ProgressCallback,
    ) -> list[OperationError]:
        errors: list[OperationError] = []
        degraded = False
        size = info.batch_size

        for index in range(info.batches):
            start = index * size
            chunk = queue[start:start + size]
            batch_num = index + 1
            notify(start, info.total, batch_num, info.batches)

            if not degraded:
                try:
                    output = await run_sync(
                        self._invoke, [self._relative(ref) for ref in chunk]
                    )
                except FormatterError as exc:
                    logger.warning(
                        "Formatter batch %d/%d failed, formatting files "
                        "one by one: %s",
                        batch_num,
                        info.batches,
                        exc,
                    )
                    degraded = True
                else:
                    errors.extend(self._attribute(output, chunk))
                    continue

            for offset, ref in enumerate(chunk):
                notify(start + offset + 1, info.total, batch_num, info.batches)
                error = await run_sync(self._format_one, ref)
                if error is not None:
                    errors.append(error)

        return errors

    def _format_one(self, ref: ScriptReference) -> OperationError | None:
        try:
            output = self._invoke([self._relative(ref)])
        except FormatterError as exc:
            return OperationError(err=str(exc), file=ref.tree_path)
        if output.strip():
            return OperationError(err=output, file=ref.tree_path)
        return None

    def _attribute(
        self, output: str, chunk: list[ScriptReference]
    ) -> list[OperationError]:
        by_path = {self._relative(ref): ref for ref in chunk}
        errors = []
        for line in output.splitlines():
            if not line.strip():
                continue
            match = _LINE_PATH.match(line)
            ref = by_path.get(match.group(1)) if match else None
            if ref is not None:
                errors.append(OperationError(err=line, file=ref.tree_path))
        return errors

    # ------------------------------------------------------------------
    # Process invocation
    # ------------------------------------------------------------------

    def _invoke(self, paths: list[str]) -> str:
        """Run the formatter over *paths* and return its cleaned stdout.

        Raises:
            FormatterError: The process could not run to completion or
                exited with a code outside ``ok_exit_codes``.
        """
        command = [*self.settings.command, *paths]
        try:
            result = subprocess.run(
                command,
                cwd=str(self.tree_root),
                capture_output=True,
                text=True,
                timeout=self.settings.timeout,
            )
        except FileNotFoundError as exc:
            raise FormatterError(
                f"Formatter not found: {command[0]}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise FormatterError(
                f"Formatter timed out after {self.settings.timeout}s"
            ) from exc
        except OSError as exc:
            raise FormatterError(f"Formatter failed to start: {exc}") from exc

        if result.returncode not in self.settings.ok_exit_codes:
            detail = (result.stderr or result.stdout or "").strip()
            raise FormatterError(
                f"Formatter exited with code {result.returncode}: {detail}"
            )
        return _clean_output(result.stdout or "")

    def _relative(self, ref: ScriptReference) -> str:
        return ref.tree_path.lstrip("/")

    def _route(self, ref: ScriptReference) -> Path:
        return self.tree_root / self._relative(ref)
