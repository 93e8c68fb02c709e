"""Project layout: where the monolithic mapdb and the git tree live.

A ``Project`` owns two roots:

* the *work directory* (``$TMPDIR/cartograph/<world>`` by default) that
  holds the downloaded ``map.json``;
* the *tree root* (``output_dir`` when given, otherwise the work
  directory) that holds ``rooms/<id>/room.json`` envelopes and extracted
  StringProc files.

Paths inside the tree are written with a leading slash
(``/rooms/1/room.json``) because that is how references are stored in the
room bodies; ``tree_route()`` maps them onto the filesystem.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any

from cartograph.file_handler import read_json, write_file

logger = logging.getLogger(__name__)

KNOWN_MAPS: dict[str, str] = {
    "gemstone": "https://github.com/FarFigNewGut/lich_repo_mirror/raw/main/gs_map/gs_map.json",
    "dragonrealms": "https://raw.githubusercontent.com/FarFigNewGut/lich_repo_mirror/refs/heads/main/dr_map/dr_map.json",
}

MAP_FILE = "/map.json"


def default_work_dir(world: str) -> Path:
    """Return ``$TMPDIR/cartograph/<world>``."""
    return Path(tempfile.gettempdir()) / "cartograph" / world


class Project:
    """Filesystem routing for one game world.

    Args:
        world: ``"gemstone"`` or ``"dragonrealms"``.
        work_dir: Directory holding ``map.json``.
        output_dir: Root of the per-room tree; defaults to *work_dir*.
        remote_url: Download URL override.
    """

    def __init__(
        self,
        world: str = "gemstone",
        work_dir: Path | str | None = None,
        output_dir: Path | str | None = None,
        remote_url: str | None = None,
    ) -> None:
        if world not in KNOWN_MAPS:
            raise ValueError(f"Unknown world: {world}")
        self.world = world
        self.work_dir = (
            Path(work_dir) if work_dir else default_work_dir(world)
        )
        self.output_dir = Path(output_dir) if output_dir else None
        self.remote_map = remote_url or KNOWN_MAPS[world]

    @classmethod
    def from_config(cls, config: Any) -> Project:
        """Build a project from a ``cartograph.config.Config``."""
        return cls(
            world=config.world,
            work_dir=config.work_dir,
            output_dir=config.output_dir,
            remote_url=config.remote_url,
        )

    def __repr__(self) -> str:
        return (
            f"Project(world={self.world!r}, work_dir={str(self.work_dir)!r}, "
            f"tree_root={str(self.tree_root)!r})"
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    @property
    def tree_root(self) -> Path:
        return self.output_dir or self.work_dir

    @property
    def map_file(self) -> Path:
        return self.route(MAP_FILE)

    def route(self, file: str) -> Path:
        """Map a work-directory path (``/map.json``) onto the filesystem."""
        return self.work_dir / file.lstrip("/")

    def tree_route(self, file: str) -> Path:
        """Map a tree path (``/rooms/1/room.json``) onto the filesystem."""
        return self.tree_root / file.lstrip("/")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Create the work directory and the tree root."""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.tree_root.mkdir(parents=True, exist_ok=True)
        logger.debug("Project directories ready: %r", self)

    # ------------------------------------------------------------------
    # Work directory primitives
    # ------------------------------------------------------------------

    def exists(self, file: str) -> bool:
        return self.route(file).exists()

    # ------------------------------------------------------------------
    # Tree primitives
    # ------------------------------------------------------------------

    def tree_exists(self, file: str) -> bool:
        return self.tree_route(file).is_file()

    def tree_read_json(self, file: str) -> Any:
        return read_json(self.tree_route(file))

    def tree_write(self, file: str, content: str) -> int:
        return write_file(self.tree_route(file), content)
