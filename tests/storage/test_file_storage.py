"""Tests for FileStorage."""

import json

import pytest

from lingopipe.errors import StorageError
from lingopipe.storage.file import FileStorage


class TestFileStorage:
    def test_colon_keys_become_directories(self, file_storage):
        file_storage.put("translation_state:en:ko", {"texts": {"a": "A"}})
        path = file_storage.base_path / "translation_state" / "en" / "ko.json"
        assert path.exists()
        assert file_storage.get("translation_state:en:ko") == {"texts": {"a": "A"}}

    def test_non_dict_values(self, file_storage):
        file_storage.put("idx:versions", [1, 2, 3])
        assert file_storage.get("idx:versions") == [1, 2, 3]

    def test_bookkeeping_fields_hidden(self, file_storage):
        file_storage.put("k", {"a": 1}, ttl=60)
        raw = json.loads((file_storage.base_path / "k.json").read_text(encoding="utf-8"))
        assert "__stored_at" in raw and "__ttl" in raw
        assert file_storage.get("k") == {"a": 1}

    def test_ttl_expiry_removes_file(self, file_storage):
        file_storage.put("k", {"a": 1}, ttl=-1)
        assert file_storage.get("k") is None
        assert not (file_storage.base_path / "k.json").exists()

    def test_corrupt_json_raises(self, file_storage):
        (file_storage.base_path / "bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError, match="bad"):
            file_storage.get("bad")

    def test_non_object_raises(self, file_storage):
        (file_storage.base_path / "list.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageError):
            file_storage.get("list")

    def test_unsafe_characters_sanitized(self, file_storage):
        assert FileStorage.sanitize_key("a b/c:d") == "a_b_c:d"
        path = file_storage.path_for("../../etc:passwd")
        assert file_storage.base_path in path.parents

    def test_invalid_key(self, file_storage):
        with pytest.raises(StorageError):
            file_storage.path_for(":::")

    def test_no_temp_files_left(self, file_storage):
        file_storage.put("a:b", {"x": 1})
        file_storage.put("a:b", {"x": 2})
        leftovers = list(file_storage.base_path.rglob("*.tmp"))
        assert leftovers == []
        assert file_storage.get("a:b") == {"x": 2}

    def test_unserializable_value_returns_false(self, file_storage):
        assert file_storage.put("k", {"x": object()}) is False
        assert file_storage.get("k") is None

    def test_keys_delete_clear(self, file_storage):
        file_storage.put("s:en:ko", {})
        file_storage.put("s:en:ja", {})
        assert file_storage.keys() == ["s:en:ja", "s:en:ko"]
        file_storage.delete("s:en:ja")
        assert file_storage.keys() == ["s:en:ko"]
        assert file_storage.clear()
        assert file_storage.keys() == []

    def test_cleanup_and_stats(self, file_storage):
        file_storage.put("live", {"a": 1})
        file_storage.put("dead", {"a": 1}, ttl=-1)
        assert file_storage.cleanup() == 1
        stats = file_storage.stats()
        assert stats["total_files"] == 1
        assert stats["total_size"] > 0
