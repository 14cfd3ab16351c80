"""Tests for test case persistence backends."""

import json

import pytest

from testoracle.store.errors import StoreError
from testoracle.store.models import ExecutionResult, TestStatus
from testoracle.store.persistence import InMemoryBackend, JsonFileBackend
from testoracle.store.repository import TestCaseStore


class TestInMemoryBackend:
    def test_put_get_query_delete(self, make_test_case):
        backend = InMemoryBackend()
        tc = make_test_case()

        backend.put(tc.id, tc)

        assert backend.get(tc.id) == tc
        assert backend.query(lambda r: r.class_name == "TestCalculator") == [tc]
        assert backend.delete(tc.id) is True
        assert backend.get(tc.id) is None

    def test_stores_a_copy(self, make_test_case):
        backend = InMemoryBackend()
        tc = make_test_case()
        backend.put(tc.id, tc)

        tc.name = "mutated"

        assert backend.get(tc.id).name == "Testadd"


class TestJsonFileBackend:
    def test_writes_one_file_per_case(self, tmp_path, make_test_case):
        backend = JsonFileBackend(tmp_path / "testcases")
        tc = make_test_case()

        backend.put(tc.id, tc)

        path = tmp_path / "testcases" / f"{tc.id}.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["id"] == str(tc.id)
        assert data["status"] == "GENERATED"
        assert not list((tmp_path / "testcases").glob("*.tmp"))

    def test_reloads_after_restart(self, tmp_path, make_test_case):
        directory = tmp_path / "testcases"
        store = TestCaseStore(JsonFileBackend(directory))
        tc = store.save(make_test_case())
        store.transition(tc.id, TestStatus.COMPILING)
        store.transition(tc.id, TestStatus.FAILED, ExecutionResult(failure_message="assert 1 == 2"))

        reopened = TestCaseStore(JsonFileBackend(directory))
        found = reopened.find_by_id(tc.id)

        assert found.status == TestStatus.FAILED
        assert found.result.failure_message == "assert 1 == 2"
        assert found.source_code == tc.source_code
        assert found.created_at == tc.created_at

    def test_round_trip_equality_after_reload(self, tmp_path, make_test_case):
        tc = make_test_case(assertions=["assert 1 + 1 == 2"])
        JsonFileBackend(tmp_path).put(tc.id, tc)

        assert JsonFileBackend(tmp_path).get(tc.id) == tc

    def test_delete_removes_file(self, tmp_path, make_test_case):
        backend = JsonFileBackend(tmp_path)
        tc = make_test_case()
        backend.put(tc.id, tc)

        assert backend.delete(tc.id) is True
        assert not (tmp_path / f"{tc.id}.json").exists()

    def test_skips_corrupt_files(self, tmp_path, make_test_case):
        (tmp_path / "garbage.json").write_text("{not json", encoding="utf-8")
        tc = make_test_case()
        JsonFileBackend(tmp_path).put(tc.id, tc)

        backend = JsonFileBackend(tmp_path)

        assert backend.query(lambda _: True) == [tc]

    def test_skips_files_that_are_not_utf8(self, tmp_path, make_test_case):
        (tmp_path / "binary.json").write_bytes(b"\xff\xfe{bad")
        tc = make_test_case()
        JsonFileBackend(tmp_path).put(tc.id, tc)

        backend = JsonFileBackend(tmp_path)

        assert backend.query(lambda _: True) == [tc]

    def test_unusable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(StoreError):
            JsonFileBackend(blocker / "testcases")
