"""Runtime configuration for cartograph.

Reads project and formatter settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CARTOGRAPH_WORLD: Game world, gemstone or dragonrealms (default: gemstone)
    CARTOGRAPH_WORK_DIR: Directory holding map.json (default: $TMPDIR/cartograph/<world>)
    CARTOGRAPH_OUTPUT_DIR: Root of the per-room git tree (default: work dir)
    CARTOGRAPH_REMOTE_URL: Override the mapdb download URL
    CARTOGRAPH_FORMATTER: Formatter command line (default: "standardrb --fix-unsafely")
    CARTOGRAPH_FORMATTER_ENABLED: Run the formatter after a git pass (default: true)
    CARTOGRAPH_BATCH_SIZE: Max files per formatter invocation (default: 500)
    CARTOGRAPH_FORMATTER_TIMEOUT: Seconds per formatter invocation (default: 300)
"""

import logging
import os
import shlex
from dataclasses import dataclass, field
from urllib.parse import urlparse

from .config_schema import DEFAULT_FORMATTER_COMMAND, FormatterConfig

logger = logging.getLogger(__name__)

KNOWN_WORLDS = ("gemstone", "dragonrealms")


@dataclass
class Config:
    world: str = "gemstone"
    work_dir: str | None = None
    output_dir: str | None = None
    remote_url: str | None = None
    formatter_enabled: bool = True
    formatter_command: list[str] = field(
        default_factory=lambda: list(DEFAULT_FORMATTER_COMMAND)
    )
    batch_size: int = 500
    formatter_timeout: float | None = 300.0
    ok_exit_codes: list[int] = field(default_factory=lambda: [0, 1])
    max_parallel_writes: int = 32

    def formatter_settings(self) -> FormatterConfig:
        """Return the formatter section as the validated pydantic model."""
        return FormatterConfig(
            enabled=self.formatter_enabled,
            command=self.formatter_command,
            batch_size=self.batch_size,
            timeout=self.formatter_timeout,
            ok_exit_codes=self.ok_exit_codes,
            max_parallel_writes=self.max_parallel_writes,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the world is unknown, the remote URL is malformed,
            or the formatter command is empty.
    """
    config.world = config.world.strip().lower()
    if config.world not in KNOWN_WORLDS:
        raise ValueError(
            f"Unknown world '{config.world}': must be one of {', '.join(KNOWN_WORLDS)}"
        )

    if config.remote_url is not None:
        config.remote_url = config.remote_url.strip()
        if not config.remote_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': must start with http:// or https://"
            )
        if not urlparse(config.remote_url).hostname:
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': URL must include a hostname"
            )

    if not config.formatter_command or not config.formatter_command[0]:
        raise ValueError(
            "Formatter command cannot be empty. Set CARTOGRAPH_FORMATTER or formatter.command."
        )

    if not config.formatter_enabled:
        logger.warning(
            "StringProc formatter disabled: extracted scripts are written unformatted"
        )


def _int_from_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    world: str | None = None,
    work_dir: str | None = None,
    output_dir: str | None = None,
    remote_url: str | None = None,
    no_format: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        world: Override game world (``--dr`` on the command line).
        work_dir: Override the work directory.
        output_dir: Override the git tree root (``--output``).
        remote_url: Override the download URL.
        no_format: Disable the StringProc formatter (CLI flag).
        yaml_fallbacks: Flat dict of ``Config`` field values taken from the
            YAML config file. Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any value is out of range after checking all sources.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_world = (
        world or os.getenv("CARTOGRAPH_WORLD") or fb.get("world") or "gemstone"
    )
    final_work_dir = (
        work_dir or os.getenv("CARTOGRAPH_WORK_DIR") or fb.get("work_dir")
    )
    final_output_dir = (
        output_dir
        or os.getenv("CARTOGRAPH_OUTPUT_DIR")
        or fb.get("output_dir")
    )
    final_remote_url = (
        remote_url
        or os.getenv("CARTOGRAPH_REMOTE_URL")
        or fb.get("remote_url")
    )

    env_command = os.getenv("CARTOGRAPH_FORMATTER")
    if env_command:
        final_command = shlex.split(env_command)
    else:
        final_command = list(
            fb.get("formatter_command") or DEFAULT_FORMATTER_COMMAND
        )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if no_format:
        final_enabled = False
    else:
        env_enabled = get_bool_env("CARTOGRAPH_FORMATTER_ENABLED")
        if env_enabled is not None:
            final_enabled = env_enabled
        else:
            final_enabled = bool(fb.get("formatter_enabled", True))

    # --- Numeric fields: env > YAML > default ---

    final_batch = _int_from_env("CARTOGRAPH_BATCH_SIZE", 1, 10000)
    if final_batch is None:
        final_batch = int(fb.get("batch_size", 500))

    timeout_raw = os.getenv("CARTOGRAPH_FORMATTER_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout: float | None = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid CARTOGRAPH_FORMATTER_TIMEOUT '{timeout_raw}': must be a positive number"
            ) from None
        if final_timeout <= 0:
            raise ValueError(
                f"Invalid CARTOGRAPH_FORMATTER_TIMEOUT '{timeout_raw}': must be a positive number"
            )
    else:
        final_timeout = fb.get("formatter_timeout", 300.0)

    config = Config(
        world=final_world,
        work_dir=final_work_dir,
        output_dir=final_output_dir,
        remote_url=final_remote_url,
        formatter_enabled=final_enabled,
        formatter_command=final_command,
        batch_size=final_batch,
        formatter_timeout=final_timeout,
        ok_exit_codes=list(fb.get("ok_exit_codes") or [0, 1]),
        max_parallel_writes=int(fb.get("max_parallel_writes", 32)),
    )

    validate_config(config)

    return config
