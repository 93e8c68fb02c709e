"""Tests for RoomRecord: hashing, classification and envelopes."""

import json

from cartograph.schema import RoomSchema
from cartograph.sync.batch import ScriptFormatBatch
from cartograph.sync.models import RoomState
from cartograph.sync.room import RoomRecord, canonical_json

ROOM = {"id": 1, "wayto": {"2": ";e puts 'hi'"}, "timeto": {"2": 0.2}}


def _record(data=None) -> RoomRecord:
    return RoomRecord.create(RoomSchema.model_validate(data or ROOM))


class TestHashing:
    def test_deterministic(self):
        assert _record().checksum == _record().checksum

    def test_key_order_independent(self):
        reordered = {"timeto": {"2": 0.2}, "wayto": {"2": ";e puts 'hi'"}, "id": 1}
        assert _record(reordered).checksum == _record().checksum
        assert canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_any_field_change_changes_hash(self):
        base = _record().checksum
        assert _record({**ROOM, "title": ["[Somewhere]"]}).checksum != base
        assert (
            _record({**ROOM, "timeto": {"2": 0.3}}).checksum != base
        )

    def test_script_code_is_not_hashed(self):
        # only the reference lands in the room body
        changed = _record({**ROOM, "wayto": {"2": ";e puts 'bye'"}})
        assert changed.checksum == _record().checksum

    def test_sha256_hex(self):
        assert len(_record().checksum) == 64


class TestCreate:
    def test_extracts_scripts_from_copy(self):
        validated = RoomSchema.model_validate(ROOM)
        record = RoomRecord.create(validated)

        assert record.room["wayto"]["2"] == "/rooms/1/wayto/stringproc-2.rb"
        assert validated.wayto["2"] == ";e puts 'hi'"
        assert [r.code for r in record.scripts] == ["puts 'hi'"]
        assert record.file == "/rooms/1/room.json"

    def test_dict_input_is_copied(self):
        data = {"id": 7, "wayto": {"8": ";e x"}, "timeto": {}}
        RoomRecord.create(data)
        assert data["wayto"]["8"] == ";e x"

    def test_unset_optional_fields_stay_absent(self):
        record = _record()
        assert set(record.room) == {"id", "wayto", "timeto"}


class TestClassify:
    def test_missing(self, project):
        assert _record().classify(project) == RoomState.MISSING

    def test_ok_after_write(self, project):
        record = _record()
        project.tree_write(record.file, record.dumps())
        project.tree_write("/rooms/1/wayto/stringproc-2.rb", "puts 'hi'")
        assert record.classify(project) == RoomState.OK

    def test_stale_on_checksum_mismatch(self, project):
        record = _record()
        project.tree_write(
            record.file, json.dumps({"checksum": "old", "room": record.room})
        )
        project.tree_write("/rooms/1/wayto/stringproc-2.rb", "puts 'hi'")
        assert record.classify(project) == RoomState.STALE

    def test_stale_when_script_file_missing(self, project):
        record = _record()
        project.tree_write(record.file, record.dumps())
        assert record.classify(project) == RoomState.STALE

    def test_unparsable_envelope_is_stale(self, project):
        record = _record()
        project.tree_write(record.file, "{ not json")
        assert record.classify(project) == RoomState.STALE

    def test_envelope_without_checksum_is_stale(self, project):
        record = _record()
        project.tree_write(record.file, json.dumps({"room": record.room}))
        assert record.classify(project) == RoomState.STALE

    def test_recomputed_every_call(self, project):
        record = _record()
        assert record.classify(project) == RoomState.MISSING
        project.tree_write(record.file, record.dumps())
        project.tree_write("/rooms/1/wayto/stringproc-2.rb", "puts 'hi'")
        assert record.classify(project) == RoomState.OK


class TestEnvelope:
    def test_dumps_shape(self):
        record = _record()
        text = record.dumps()
        data = json.loads(text)

        assert list(data) == ["checksum", "room"]
        assert data["checksum"] == record.checksum
        assert data["room"] == record.room
        assert text.startswith('{\n  "checksum"')

    async def test_write_queues_scripts(self, project):
        record = _record()
        batch = ScriptFormatBatch(project.tree_root)

        await record.write(project, batch)

        envelope = project.tree_read_json(record.file)
        assert envelope["checksum"] == record.checksum
        assert batch.batch_info().total == 1
