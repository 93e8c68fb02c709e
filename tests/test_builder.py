"""Tests for rebuilding a monolithic mapdb from a room tree."""

import json

import pytest

from cartograph.errors import BuildError
from cartograph.sync.builder import TreeBuilder

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _envelope(tree, room, checksum="abc"):
    path = tree / "rooms" / str(room["id"]) / "room.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"checksum": checksum, "room": room}, indent=2))
    return path


def _script(tree, rel, content):
    path = tree / rel.lstrip("/")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "git"
    root.mkdir()
    return root


class TestFindEnvelopes:
    def test_sorted_recursive(self, tree):
        for room_id in (10, 2, 1):
            _envelope(tree, {"id": room_id, "wayto": {}, "timeto": {}})
        _script(tree, "/rooms/1/wayto/stringproc-2.rb", "x")

        found = TreeBuilder(tree).find_envelopes()

        assert [p.parent.name for p in found] == ["1", "10", "2"]

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(BuildError, match="Input directory not found"):
            TreeBuilder(tmp_path / "nope").find_envelopes()


class TestBuildStandard:
    def test_writes_rooms_in_id_order(self, tree, tmp_path):
        for room_id in (10, 2, 1):
            _envelope(tree, {"id": room_id, "wayto": {}, "timeto": {}})
        out = tmp_path / "out" / "mapdb.json"

        result = TreeBuilder(tree).build_standard(out)

        assert result.rooms_processed == 3
        assert result.errors == []
        assert result.output == str(out)
        data = json.loads(out.read_text())
        assert [r["id"] for r in data] == [1, 2, 10]

    def test_keeps_tree_references(self, tree, tmp_path):
        room = {
            "id": 1,
            "wayto": {"2": "/rooms/1/wayto/stringproc-2.rb"},
            "timeto": {"2": 0.2},
        }
        _envelope(tree, room)
        out = tmp_path / "mapdb.json"

        TreeBuilder(tree).build_standard(out)

        assert json.loads(out.read_text()) == [room]

    def test_bad_envelope_is_reported(self, tree, tmp_path):
        _envelope(tree, {"id": 1, "wayto": {}, "timeto": {}})
        bad = tree / "rooms" / "2" / "room.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("{ nope")

        result = TreeBuilder(tree).build_standard(tmp_path / "mapdb.json")

        assert result.rooms_processed == 1
        assert len(result.errors) == 1
        assert result.errors[0].file == str(bad)
        assert result.errors[0].err.startswith("Failed to process room file: ")

    def test_envelope_without_room_is_reported(self, tree, tmp_path):
        path = tree / "rooms" / "3" / "room.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"checksum": "x"}))

        result = TreeBuilder(tree).build_standard(tmp_path / "mapdb.json")

        assert result.rooms_processed == 0
        assert "no room body" in result.errors[0].err

    def test_unwritable_output_raises(self, tree, tmp_path):
        _envelope(tree, {"id": 1, "wayto": {}, "timeto": {}})
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")

        with pytest.raises(BuildError, match="Standard build failed"):
            TreeBuilder(tree).build_standard(blocker / "mapdb.json")


class TestBuildBundle:
    async def test_bundle_layout(self, tree, tmp_path):
        _envelope(
            tree,
            {
                "id": 382,
                "wayto": {"30708": "/rooms/382/wayto/stringproc-30708.rb"},
                "timeto": {"19236": "/rooms/382/timeto/stringproc-19236.rb"},
            },
        )
        _script(tree, "/rooms/382/wayto/stringproc-30708.rb", 'fput "go table"\n')
        _script(tree, "/rooms/382/timeto/stringproc-19236.rb", "5")
        out = tmp_path / "dist"

        result = await TreeBuilder(tree).build_bundle(out)

        assert result.rooms_processed == 1
        assert result.scripts_written == 2
        assert result.output == str(out / "mapdb.json")
        room = json.loads((out / "mapdb.json").read_text())[0]
        assert room["wayto"]["30708"] == (
            ";e Cartographer.evaluate_script('wayto/room-382-to-30708.rb')"
        )
        assert room["timeto"]["19236"] == (
            ";e Cartographer.evaluate_script('timeto/room-382-to-19236.rb')"
        )
        assert (
            out / "stringprocs" / "wayto" / "room-382-to-30708.rb"
        ).read_text() == 'fput "go table"'
        assert (out / "stringprocs" / "timeto").is_dir()

    async def test_creates_empty_script_dirs(self, tree, tmp_path):
        _envelope(tree, {"id": 1, "wayto": {"2": "north"}, "timeto": {"2": 0.2}})
        out = tmp_path / "dist"

        await TreeBuilder(tree).build_bundle(out)

        assert (out / "stringprocs" / "wayto").is_dir()
        assert (out / "stringprocs" / "timeto").is_dir()

    async def test_recovers_missing_file_from_source(
        self, tree, tmp_path, write_mapdb
    ):
        _envelope(
            tree,
            {
                "id": 1,
                "wayto": {
                    "2": "/rooms/1/wayto/stringproc-2.rb",
                    "3": "/rooms/1/wayto/stringproc-3.rb",
                },
                "timeto": {},
            },
        )
        _script(tree, "/rooms/1/wayto/stringproc-3.rb", "puts 'existing file'")
        source = write_mapdb(
            [{"id": 1, "wayto": {"2": ";e puts 'recovered'"}, "timeto": {}}],
            name="source.json",
        )
        out = tmp_path / "dist"

        result = await TreeBuilder(tree, source=source).build_bundle(out)

        assert result.errors == []
        scripts = out / "stringprocs" / "wayto"
        assert (scripts / "room-1-to-2.rb").read_text() == "puts 'recovered'"
        assert (scripts / "room-1-to-3.rb").read_text() == "puts 'existing file'"

    async def test_unrecoverable_room_is_excluded(
        self, tree, tmp_path, write_mapdb
    ):
        bad = _envelope(
            tree,
            {
                "id": 1,
                "wayto": {"2": "/rooms/1/wayto/stringproc-2.rb"},
                "timeto": {},
            },
        )
        _envelope(tree, {"id": 2, "wayto": {"1": "south"}, "timeto": {}})
        source = write_mapdb(
            [{"id": 1, "wayto": {"2": "go north"}}], name="source.json"
        )
        out = tmp_path / "dist"

        result = await TreeBuilder(tree, source=source).build_bundle(out)

        assert result.rooms_processed == 1
        assert len(result.errors) == 1
        assert result.errors[0].file == str(bad)
        assert "Missing StringProc file /rooms/1/wayto/stringproc-2.rb" in (
            result.errors[0].err
        )
        ids = [r["id"] for r in json.loads((out / "mapdb.json").read_text())]
        assert ids == [2]

    async def test_missing_file_without_source_keeps_reference(
        self, tree, tmp_path
    ):
        _envelope(
            tree,
            {
                "id": 1,
                "wayto": {"2": "/rooms/1/wayto/stringproc-2.rb"},
                "timeto": {},
            },
        )
        out = tmp_path / "dist"

        result = await TreeBuilder(tree).build_bundle(out)

        assert result.errors == []
        room = json.loads((out / "mapdb.json").read_text())[0]
        assert room["wayto"]["2"] == "/rooms/1/wayto/stringproc-2.rb"

    async def test_raw_stringprocs_are_bundled(self, tree, tmp_path):
        _envelope(
            tree, {"id": 5, "wayto": {"6": ";e  move 'up'  "}, "timeto": {}}
        )
        out = tmp_path / "dist"

        await TreeBuilder(tree).build_bundle(out)

        assert (
            out / "stringprocs" / "wayto" / "room-5-to-6.rb"
        ).read_text() == "move 'up'"

    async def test_unsafe_destination_key_is_reported(self, tree, tmp_path):
        bad = _envelope(
            tree,
            {
                "id": 1,
                "wayto": {"x/../../../../evil": ";e system('rm')"},
                "timeto": {},
            },
        )
        _envelope(tree, {"id": 2, "wayto": {"1": "south"}, "timeto": {}})
        out = tmp_path / "dist"

        result = await TreeBuilder(tree).build_bundle(out)

        assert result.rooms_processed == 1
        assert [e.file for e in result.errors] == [str(bad)]
        assert "unsafe StringProc destination key" in result.errors[0].err
        assert list(tmp_path.rglob("*evil*")) == []
        ids = [r["id"] for r in json.loads((out / "mapdb.json").read_text())]
        assert ids == [2]
