"""Tests for text and JSON report formatting."""

import json

from cartograph.sync.models import BuildResult, OperationError, Operations
from cartograph.sync.reporter import (
    format_build_result,
    format_error_table,
    format_operations,
    report_to_json,
)
from cartograph.validators import FileValidationError, FilesValidationResult


class TestFormatOperations:
    def test_summary_then_errors(self):
        ops = Operations(
            created=2,
            updated=1,
            skipped=4,
            errors=[
                OperationError(err="bad wayto", file="/rooms/9/room.json"),
                OperationError(err="W: Style/Foo", file="/rooms/1/wayto/stringproc-2.rb"),
            ],
        )

        text = format_operations(ops)

        assert text.splitlines() == [
            "created=2 skipped=4 updated=1 errors=2",
            "bad wayto",
            "W: Style/Foo",
        ]

    def test_runtime_prefix(self):
        assert format_operations(Operations(), runtime_ms=12).startswith("[12ms] ")


class TestFormatBuildResult:
    def test_standard_success(self):
        result = BuildResult(rooms_processed=3, output="/out/mapdb.json")
        assert format_build_result(result) == "built 3 rooms to /out/mapdb.json"

    def test_bundle_success(self):
        result = BuildResult(
            rooms_processed=3, output="/dist/mapdb.json", scripts_written=5
        )
        assert format_build_result(result, bundle=True).splitlines() == [
            "built 3 rooms to bundle format",
            "Created: /dist/mapdb.json",
            "Created: 5 StringProc files",
        ]

    def test_errors_listed_by_file(self):
        result = BuildResult(
            rooms_processed=1,
            output="/out/mapdb.json",
            errors=[
                OperationError(
                    err="Failed to process room file: boom",
                    file="/tree/rooms/2/room.json",
                )
            ],
        )
        assert format_build_result(result, runtime_ms=5).splitlines() == [
            "[5ms] built 1 rooms with 1 errors",
            "",
            "Errors encountered:",
            "/tree/rooms/2/room.json: Failed to process room file: boom",
        ]


class TestFormatErrorTable:
    def test_aligned_columns(self):
        rows = [
            FileValidationError(file="a.json", error="short", id=1, title="[A]"),
            FileValidationError(file="long-name.json", error="x"),
        ]

        lines = format_error_table(rows, ["file", "id", "error"]).splitlines()

        assert lines[0].split() == ["file", "id", "error"]
        assert set(lines[1].replace(" ", "")) == {"-"}
        assert lines[2].split() == ["a.json", "1", "short"]
        # None renders as an empty cell
        assert lines[3].split() == ["long-name.json", "x"]
        assert lines[2].index("short") == lines[3].index("x")


class TestReportToJson:
    def test_operations_gain_counts(self):
        ops = Operations(
            created=1, errors=[OperationError(err="e", file="f")]
        )
        data = report_to_json(ops)
        assert data["counts"] == {
            "created": 1,
            "updated": 0,
            "skipped": 0,
            "errors": 1,
        }
        assert data["errors"] == [{"err": "e", "file": "f"}]

    def test_dataclass_result(self):
        result = FilesValidationResult(
            valid_files=1,
            errors=[FileValidationError(file="b.json", error="Validation error: id: bad")],
            files=["a.json", "b.json"],
        )
        data = report_to_json(result)
        assert "counts" not in data
        assert json.loads(json.dumps(data))["errors"][0]["file"] == "b.json"
