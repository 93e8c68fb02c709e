"""Command implementations shared by the CLI.

Each task takes already-resolved settings (a ``Project`` and, where
relevant, a ``Config``) and returns a result object; printing and exit
codes belong to ``cartograph.cli``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cartograph.config import Config
from cartograph.core.client import MapdbClient
from cartograph.core.project import MAP_FILE, Project
from cartograph.errors import BuildError
from cartograph.file_handler import validate_input_dir, validate_input_file
from cartograph.sync import (
    BuildResult,
    Operations,
    SyncEngine,
    TreeBuilder,
)
from cartograph.sync.batch import ProgressCallback
from cartograph.sync.engine import RoomProgressCallback
from cartograph.validators import (
    FilesValidationResult,
    ValidationResult,
    validate_files,
    validate_mapdb,
)

logger = logging.getLogger(__name__)


def download(project: Project, client: MapdbClient | None = None) -> dict:
    """Fetch the world's mapdb into ``<work_dir>/map.json``.

    Returns:
        ``{"url", "location", "mb"}``.

    Raises:
        DownloadError: The remote request failed.
    """
    project.setup()
    client = client or MapdbClient()
    return client.download(project.remote_map, project.map_file)


def validate(
    project: Project, input_file: str | Path | None = None
) -> ValidationResult:
    """Validate *input_file*, or the project's downloaded mapdb.

    Raises:
        MapdbFormatError: The file cannot be read as an array of rooms.
    """
    return validate_mapdb(input_file or project.map_file)


def check_files(files: list[str]) -> FilesValidationResult:
    """Validate individual envelope or room files."""
    return validate_files(files)


async def sync(
    project: Project,
    config: Config,
    input_file: str | Path | None = None,
    on_progress: RoomProgressCallback | None = None,
    on_format_progress: ProgressCallback | None = None,
    client: MapdbClient | None = None,
) -> Operations:
    """Run a git pass from a monolithic mapdb into the project tree.

    The mapdb is downloaded first when no *input_file* is given and the
    work directory has none yet.

    Raises:
        DownloadError: The mapdb had to be fetched and could not be.
        MapdbFormatError: The mapdb is not an array of rooms.
    """
    if input_file is None and not project.exists(MAP_FILE):
        logger.info("No local mapdb at %s, downloading", project.map_file)
        download(project, client)

    project.setup()
    result = validate(project, input_file)
    engine = SyncEngine(
        project,
        config.formatter_settings(),
        on_progress=on_progress,
        on_format_progress=on_format_progress,
    )
    return await engine.run(result.rooms, result.errors)


async def build(
    input_dir: str | Path,
    output: str | Path,
    bundle: bool = False,
    source: str | Path | None = None,
    max_parallel_writes: int = 32,
) -> BuildResult:
    """Rebuild a mapdb from a tree.

    Args:
        input_dir: Tree root containing ``rooms/<id>/room.json``.
        output: Output file (standard) or directory (bundle).
        bundle: Produce a bundle directory instead of a single file.
        source: Mapdb used to recover missing StringProc files.
        max_parallel_writes: Concurrent bundle file writes.

    Raises:
        BuildError: The input tree or the output cannot be used.
    """
    try:
        input_dir = validate_input_dir(str(input_dir))
    except ValueError as exc:
        raise BuildError(f"Input tree unusable: {exc}") from exc
    if source is not None:
        try:
            source = validate_input_file(str(source))
        except ValueError as exc:
            raise BuildError(f"Source mapdb unusable: {exc}") from exc

    builder = TreeBuilder(
        input_dir, source=source, max_parallel_writes=max_parallel_writes
    )
    if bundle:
        return await builder.build_bundle(output)
    return builder.build_standard(output)
