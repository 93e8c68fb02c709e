"""Report formatting for git passes, builds and validation runs.

Provides human-readable and machine-readable output:

- ``format_operations`` -- summary of a git pass.
- ``format_build_result`` -- summary of a standard or bundle build.
- ``format_error_table`` -- validation errors as an aligned table.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import TYPE_CHECKING, Any, Sequence

from pydantic import BaseModel

if TYPE_CHECKING:
    from .models import BuildResult, Operations

# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def format_operations(operations: Operations, runtime_ms: int | None = None) -> str:
    """Format a git pass result as text.

    The first line is the ``created=.. skipped=.. updated=.. errors=..``
    summary; each error message follows on its own line.
    """
    header = operations.summary()
    if runtime_ms is not None:
        header = f"[{runtime_ms}ms] {header}"
    lines = [header]
    for error in operations.errors:
        lines.append(error.err)
    return "\n".join(lines)


def format_build_result(
    result: BuildResult, bundle: bool = False, runtime_ms: int | None = None
) -> str:
    """Format a build result as text.

    Errors are listed as ``<file>: <err>`` after a blank line.
    """
    prefix = f"[{runtime_ms}ms] " if runtime_ms is not None else ""
    lines: list[str] = []

    if not result.errors:
        if bundle:
            lines.append(
                f"{prefix}built {result.rooms_processed} rooms to bundle format"
            )
            lines.append(f"Created: {result.output}")
            lines.append(f"Created: {result.scripts_written} StringProc files")
        else:
            lines.append(
                f"{prefix}built {result.rooms_processed} rooms to {result.output}"
            )
        return "\n".join(lines)

    lines.append(
        f"{prefix}built {result.rooms_processed} rooms with "
        f"{len(result.errors)} errors"
    )
    lines.append("")
    lines.append("Errors encountered:")
    for error in result.errors:
        lines.append(f"{error.file}: {error.err}")
    return "\n".join(lines)


def format_error_table(
    rows: Sequence[Any], columns: Sequence[str]
) -> str:
    """Render dataclass or model rows as a plain aligned table."""
    records = [_as_dict(row) for row in rows]
    cells = [
        [("" if r.get(c) is None else str(r.get(c))) for c in columns]
        for r in records
    ]
    widths = [
        max([len(c)] + [len(row[i]) for row in cells])
        for i, c in enumerate(columns)
    ]

    def _line(values: Sequence[str]) -> str:
        return "  ".join(v.ljust(w) for v, w in zip(values, widths)).rstrip()

    lines = [_line(columns), _line(["-" * w for w in widths])]
    lines.extend(_line(row) for row in cells)
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def _as_dict(obj: Any) -> dict:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return dict(obj)


def report_to_json(report: Any) -> dict:
    """Convert any cartograph result to a JSON-serialisable dict.

    Accepts ``Operations``, ``BuildResult`` and the validation result
    dataclasses.  ``Operations`` gains a ``counts`` block.
    """
    data = _as_dict(report)
    if "created" in data and "updated" in data:
        data["counts"] = {
            "created": data["created"],
            "updated": data["updated"],
            "skipped": data["skipped"],
            "errors": len(data["errors"]),
        }
    return data
