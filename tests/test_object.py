import json

import pytest

from niku.object import ObjectEntry, ObjectKind


def _entry(**overrides):
    values = {
        "node_address": "127.0.0.1:4000",
        "file_hash": "ab" * 32,
        "name": "notes.txt",
        "kind": ObjectKind.FILE,
        "size": 876,
    }
    values.update(overrides)
    return ObjectEntry(**values)


def test_kind_display():
    file_entry = ObjectEntry.from_dict(_entry(kind=ObjectKind.FILE).to_dict())
    folder_entry = ObjectEntry.from_dict(_entry(kind=ObjectKind.FOLDER).to_dict())
    assert f"{file_entry.kind}" == "file"
    assert f"{folder_entry.kind}" == "folder"


def test_kind_serialized_by_variant_name():
    assert _entry(kind=ObjectKind.FOLDER).to_dict()["kind"] == "Folder"
    assert _entry().to_dict()["kind"] == "File"


def test_entry_round_trip_through_json():
    entry = _entry(kind=ObjectKind.FOLDER, name="photos", size=8_000_000)
    restored = ObjectEntry.from_dict(json.loads(json.dumps(entry.to_dict())))
    assert restored == entry


def test_entry_dict_keeps_values():
    entry = _entry()
    data = entry.to_dict()
    assert data["name"] == "notes.txt"
    assert data["size"] == 876
    assert data["node_address"] == "127.0.0.1:4000"


def test_unknown_kind_rejected():
    data = _entry().to_dict()
    data["kind"] = "file"
    with pytest.raises(ValueError):
        ObjectEntry.from_dict(data)


def test_missing_field_rejected():
    data = _entry().to_dict()
    del data["file_hash"]
    with pytest.raises(ValueError):
        ObjectEntry.from_dict(data)


@pytest.mark.parametrize("size", [-1, 2**64, True, "12"])
def test_invalid_size_rejected(size):
    data = _entry().to_dict()
    data["size"] = size
    with pytest.raises(ValueError):
        ObjectEntry.from_dict(data)


def test_largest_size_accepted():
    entry = _entry(size=2**64 - 1)
    assert ObjectEntry.from_dict(entry.to_dict()).size == 2**64 - 1