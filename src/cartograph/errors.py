"""Exception hierarchy for cartograph.

Per-room failures (``MissingScriptError``, ``UnsafeScriptKeyError``) are
caught by the pass that raised them and recorded as ``{err, file}``
entries; the remaining exceptions are pass-level and propagate to the
command line front end.
"""


class CartographError(Exception):
    """Base exception for the cartograph project."""


class MissingScriptError(CartographError):
    """Raised when a referenced StringProc file is gone and cannot be recovered."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"Missing StringProc file {path} and could not recover from "
            "source mapdb. This indicates incomplete git conversion."
        )


class UnsafeScriptKeyError(CartographError):
    """Raised when a StringProc destination key cannot be used as a file name."""

    def __init__(self, room_id: str, key: str) -> None:
        self.room_id = room_id
        self.key = key
        super().__init__(
            f"Room {room_id} has unsafe StringProc destination key {key!r}"
        )


class FormatterError(CartographError):
    """Raised when the external formatter process cannot be run to completion."""


class DownloadError(CartographError):
    """Raised when the remote mapdb cannot be fetched."""

    def __init__(self, url: str, status: int | None, reason: str) -> None:
        self.url = url
        self.status = status
        super().__init__(f"error fetching > status={reason} {url}")


class MapdbFormatError(CartographError):
    """Raised when a monolithic mapdb file cannot be read as an array of rooms."""


class BuildError(CartographError):
    """Raised when a build pass cannot read its input or write its output."""
