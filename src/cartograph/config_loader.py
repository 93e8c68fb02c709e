"""
Layered YAML configuration for cartograph.

Config files are found by convention and merged section by section, the
nearest file winning per key, so a project file that only sets
``formatter.batch_size`` keeps the formatter command from the global file.
Every file is checked against the ``UnifiedConfig`` sections as it is read,
which reports a bad value against the file that holds it.

Usage:
    from cartograph.config_loader import load_hierarchical_config

    config = build_config(load_hierarchical_config())
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_schema import UnifiedConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CARTOGRAPH_CONFIG"
PROJECT_CONFIG_NAMES = ("config.yml", "config.yaml")

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable becomes its default, or ``""`` without one.
    """

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1)) or match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def project_config_path() -> Path:
    """Default location of the project config file."""
    return Path.cwd() / ".cartograph" / PROJECT_CONFIG_NAMES[0]


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``CARTOGRAPH_CONFIG`` (explicit single path)
        2. ``.cartograph/config.yml`` then ``.cartograph/config.yaml`` in CWD
        3. ``~/.config/cartograph/config.yml``

    A file reachable by more than one route is listed once.
    """
    candidates: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser())
    candidates.extend(
        Path.cwd() / ".cartograph" / name for name in PROJECT_CONFIG_NAMES
    )
    candidates.append(Path.home() / ".config" / "cartograph" / "config.yml")

    found = dict.fromkeys(p.resolve() for p in candidates if p.is_file())
    return list(found)


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# cartograph configuration
#
# Project settings can also be set via environment variables:
#   CARTOGRAPH_WORLD, CARTOGRAPH_WORK_DIR, CARTOGRAPH_OUTPUT_DIR,
#   CARTOGRAPH_REMOTE_URL
#
# project:
#   world: gemstone
#   work_dir: null
#   output_dir: ./mapdb-git
#
# StringProc formatter (run over every extracted .rb file):
#
# formatter:
#   enabled: true
#   command: [standardrb, --fix-unsafely]
#   batch_size: 500
#   timeout: 300
#   ok_exit_codes: [0, 1]
#
# logging:
#   level: WARNING
#   file: null
"""


def ensure_config() -> Path:
    """Return the config file in effect, writing a starter one if there is none."""
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = project_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def read_config_file(path: Path) -> dict[str, dict]:
    """
    Read one config file and return its sections.

    Environment references are expanded before the sections are checked.
    Unknown sections are logged and dropped; empty sections are dropped.

    Raises:
        ValueError: The file is not valid YAML or a section does not match
            its ``UnifiedConfig`` model.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"{path} is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Config file %s has non-dict root (%s), skipping",
            path,
            type(data).__name__,
        )
        return {}

    sections: dict[str, dict] = {}
    for name, body in _interpolate_recursive(data).items():
        field = UnifiedConfig.model_fields.get(name)
        if field is None:
            logger.warning("Ignoring unknown section %r in %s", name, path)
            continue
        if body is None:
            continue
        try:
            field.annotation.model_validate(body)
        except ValidationError as exc:
            raise ValueError(f"{path}: invalid '{name}' section: {exc}") from exc
        sections[name] = body
    return sections


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw section dict.

    Files are applied from lowest precedence to highest; within a section
    later keys replace earlier ones.  Returns ``{}`` when no file exists.
    """
    merged: dict[str, dict] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        for name, body in read_config_file(path).items():
            merged.setdefault(name, {}).update(body)
    return merged
