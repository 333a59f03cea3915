import pytest

from cloudnotes.errors import StorageError
from cloudnotes.storage.kv_store import FileKVStore, MemoryKVStore, open_store


@pytest.fixture(params=["file", "memory"])
def kv(request, tmp_path):
    return open_store(request.param, tmp_path)


def test_get_missing_key_is_none(kv):
    assert kv.get("tenant:a:note:1") is None


def test_set_then_get_and_overwrite(kv):
    kv.set("k", {"v": 1})
    assert kv.get("k") == {"v": 1}

    kv.set("k", {"v": 2})
    assert kv.get("k") == {"v": 2}


def test_delete_is_idempotent(kv):
    kv.set("k", {"v": 1})
    kv.delete("k")
    kv.delete("k")
    assert kv.get("k") is None


def test_scan_respects_prefix_boundary(kv):
    kv.set("tenant:a:note:1", {"id": "1"})
    kv.set("tenant:a:note:2", {"id": "2"})
    kv.set("tenant:ab:note:3", {"id": "3"})
    kv.set("user:a:profile", {"id": "p"})

    ids = sorted(v["id"] for v in kv.scan_by_prefix("tenant:a:"))
    assert ids == ["1", "2"]
    assert kv.scan_by_prefix("tenant:zzz:") == []


def test_scan_skips_deleted_keys(kv):
    kv.set("p:1", {"id": "1"})
    kv.set("p:2", {"id": "2"})
    kv.delete("p:1")
    assert [v["id"] for v in kv.scan_by_prefix("p:")] == ["2"]


def test_delete_many_removes_only_given_keys(kv):
    for i in range(4):
        kv.set(f"p:{i}", {"id": i})
    assert kv.delete_many(["p:0", "p:1", "p:missing"]) == 3
    assert sorted(v["id"] for v in kv.scan_by_prefix("p:")) == [2, 3]


def test_values_are_copies(kv):
    value = {"tags": ["a"]}
    kv.set("k", value)
    value["tags"].append("b")
    assert kv.get("k") == {"tags": ["a"]}


def test_file_store_keys_with_separators_round_trip(tmp_path):
    kv = FileKVStore(tmp_path)
    kv.set("tenant:a%2Fb:note:x/y", {"ok": True})
    assert kv.get("tenant:a%2Fb:note:x/y") == {"ok": True}
    assert kv.scan_by_prefix("tenant:a%2Fb:") == [{"ok": True}]


def test_file_store_survives_reopen(tmp_path):
    FileKVStore(tmp_path).set("k", {"v": 1})
    assert FileKVStore(tmp_path).get("k") == {"v": 1}


def test_file_store_ignores_temp_files(tmp_path):
    kv = FileKVStore(tmp_path)
    kv.set("p:1", {"id": "1"})
    (tmp_path / "kv" / "p%3A2.json.tmp-deadbeef").write_text("{", encoding="utf-8")
    assert kv.scan_by_prefix("p:") == [{"id": "1"}]


def test_file_store_corrupted_value_is_storage_error(tmp_path):
    kv = FileKVStore(tmp_path)
    kv.set("p:1", {"id": "1"})
    (tmp_path / "kv" / "p%3A1.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        kv.get("p:1")


class FlakyStore(MemoryKVStore):
    def __init__(self, broken: set[str]):
        super().__init__()
        self.broken = broken

    def delete(self, key: str) -> None:
        if key in self.broken:
            raise StorageError(f"cannot delete {key}")
        super().delete(key)


def test_delete_many_partial_failure_keeps_going():
    kv = FlakyStore(broken={"p:1"})
    for i in range(3):
        kv.set(f"p:{i}", {"id": i})

    with pytest.raises(StorageError):
        kv.delete_many(["p:0", "p:1", "p:2"])

    # the failing key is intact, the others are gone
    assert kv.get("p:0") is None
    assert kv.get("p:1") == {"id": 1}
    assert kv.get("p:2") is None


def test_unknown_backend_rejected(tmp_path):
    with pytest.raises(ValueError):
        open_store("redis", tmp_path)
