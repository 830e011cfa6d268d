import pytest

import record_store
from record_store import (RecordStore, format_record, join_records, record_number,
                          split_records)
from settings import StoreConfig
from store_errors import ErrorKind, IOFailureError, NotFoundError


def artifacts(store, name):
    config = store.config
    return config.content_path(name).read_bytes(), config.tree_path(name).read_bytes()


def test_write_read_append_delete_scenario(store):
    assert store.write("t", "HELLO", True).ok
    assert store.read("t").value == "1-)HELLO\n"

    assert store.append("t", "WORLD").ok
    assert store.read("t").value == "1-)HELLO\n2-)WORLD\n"

    assert store.delete("t", 1).ok
    assert store.read("t").value == "1-)WORLD\n"


def test_artifact_layout(store, tmp_path):
    store.write("t", "AAAA")
    assert (tmp_path / "t").read_bytes() == b"0000"
    assert (tmp_path / "t_tree").read_bytes() == b"LA|4"
    assert store.read("t").value == "AAAA"


def test_read_file(five_records):
    expected = "1-)TEXT STRING1\n2-)TEXT STRING2\n3-)TEXT STRING3\n4-)TEXT STRING4\n5-)TEXT STRING5\n"
    assert five_records.read("test1").value == expected


def test_append_numbers_after_last_record(five_records):
    before = five_records.records("test1").value
    assert five_records.append("test1", "TEXT STRING6").ok
    after = five_records.records("test1").value
    assert len(after) == len(before) + 1
    assert after[-1] == "6-)TEXT STRING6"


def test_edit_keeps_line_number(five_records):
    assert five_records.edit("test1", 3, "TEXT STRING EDIT").ok
    assert five_records.read("test1").value == (
        "1-)TEXT STRING1\n2-)TEXT STRING2\n3-)TEXT STRING EDIT\n4-)TEXT STRING4\n5-)TEXT STRING5\n")


def test_delete_renumbers_following_records(five_records):
    assert five_records.delete("test1", 2).ok
    assert five_records.records("test1").value == [
        "1-)TEXT STRING1", "2-)TEXT STRING3", "3-)TEXT STRING4", "4-)TEXT STRING5"]


def test_delete_first_record(five_records):
    assert five_records.delete("test1", 1).ok
    assert five_records.read("test1").value == (
        "1-)TEXT STRING2\n2-)TEXT STRING3\n3-)TEXT STRING4\n4-)TEXT STRING5\n")


@pytest.mark.parametrize("line_number", [0, -1, 6, 100])
def test_out_of_range_line_leaves_artifacts_untouched(five_records, line_number):
    before = artifacts(five_records, "test1")

    edited = five_records.edit("test1", line_number, "TEXT STRING EDIT")
    deleted = five_records.delete("test1", line_number)

    assert edited.error is ErrorKind.INVALID_ARGUMENT
    assert deleted.error is ErrorKind.INVALID_ARGUMENT
    assert artifacts(five_records, "test1") == before


@pytest.mark.parametrize("operation", [
    lambda s: s.read("missing"),
    lambda s: s.append("missing", "TEXT STRING5"),
    lambda s: s.edit("missing", 3, "TEXT STRING EDIT"),
    lambda s: s.delete("missing", 2),
    lambda s: s.records("missing"),
    lambda s: s.read_raw("missing"),
])
def test_missing_store_is_not_found(store, operation):
    result = operation(store)
    assert not result.ok
    assert result.error is ErrorKind.NOT_FOUND


def test_missing_tree_artifact_is_not_found(store, tmp_path):
    store.write("t", "HELLO", True)
    (tmp_path / "t_tree").unlink()
    assert store.read("t").error is ErrorKind.NOT_FOUND


def test_rewrite_is_byte_identical(five_records):
    before = artifacts(five_records, "test1")
    assert five_records.write("test1", five_records.read("test1").value, False).ok
    assert artifacts(five_records, "test1") == before


def test_unsupported_text_writes_nothing(store, tmp_path):
    result = store.write("t", "user_name", True)
    assert result.error is ErrorKind.INVALID_ARGUMENT
    assert not (tmp_path / "t").exists()
    assert not (tmp_path / "t_tree").exists()


def test_empty_store(store):
    assert store.write("t", "").ok
    assert store.read("t").value == ""
    assert store.edit("t", 1, "X").error is ErrorKind.INVALID_ARGUMENT
    assert store.append("t", "FIRST").ok
    assert store.read("t").value == "1-)FIRST\n"


def test_deleting_last_record_empties_store(store):
    store.write("t", "ONLY", True)
    assert store.delete("t", 1).ok
    assert store.read("t").value == ""
    assert store.records("t").value == []


def test_stale_tree_is_detected(store, tmp_path):
    store.write("t", "HELLO", True)
    old_tree = (tmp_path / "t_tree").read_bytes()
    store.append("t", "WORLD")
    (tmp_path / "t_tree").write_bytes(old_tree)

    result = store.read("t")
    assert result.error is ErrorKind.CORRUPT


def test_failed_tree_write_leaves_torn_pair(store, monkeypatch):
    store.write("t", "HELLO", True)
    real_replace = RecordStore._replace

    def failing_replace(path, data):
        if path.name.endswith("_tree"):
            raise IOFailureError(f"cannot write {path}: disk full")
        real_replace(path, data)

    monkeypatch.setattr(RecordStore, "_replace", staticmethod(failing_replace))
    assert store.append("t", "WORLD").error is ErrorKind.IO_FAILURE
    monkeypatch.undo()

    assert store.read("t").error is ErrorKind.CORRUPT


def test_garbage_blob_is_corrupt(store, tmp_path):
    store.write("t", "HELLO", True)
    (tmp_path / "t").write_bytes(b"01x1")
    assert store.read("t").error is ErrorKind.CORRUPT


def test_truncated_tree_is_corrupt(store, tmp_path):
    store.write("t", "HELLO", True)
    tree = (tmp_path / "t_tree").read_bytes()
    (tmp_path / "t_tree").write_bytes(tree[:-4])
    assert store.read("t").error is ErrorKind.CORRUPT


def test_write_to_unusable_root_is_io_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = RecordStore(StoreConfig(root=blocker))
    assert store.write("t", "HELLO", True).error is ErrorKind.IO_FAILURE


def test_read_raw_returns_blob(store):
    store.write("t", "AAAA")
    assert store.read_raw("t").value == b"0000"


def test_invalid_store_name(store):
    assert store.read("").error is ErrorKind.INVALID_ARGUMENT
    assert store.write("a/b", "X").error is ErrorKind.INVALID_ARGUMENT


def test_unwrap_raises_matching_error(store):
    with pytest.raises(NotFoundError):
        store.read("missing").unwrap()


def test_record_helpers():
    assert format_record(12, "Name:ALICE") == "12-)Name:ALICE\n"
    assert split_records("1-)A\n\n2-)B\n") == ["1-)A", "2-)B"]
    assert join_records(["1-)A", "2-)B"]) == "1-)A\n2-)B\n"
    assert record_number("12-)Name:ALICE") == 12


@pytest.mark.parametrize("line", ["Name:ALICE", "-)X", "1a-)X"])
def test_record_without_number_is_corrupt(line):
    with pytest.raises(ValueError):
        record_number(line)


def test_module_functions_use_environment_root(tmp_path, monkeypatch):
    monkeypatch.setenv("RECORD_STORE_ROOT", str(tmp_path))
    monkeypatch.setattr(record_store, "_default_store", None)

    assert record_store.write("members", "Name:ALICE", True).ok
    assert record_store.append("members", "Name:BOB").ok
    assert record_store.edit("members", 2, "Name:CAROL").ok
    assert record_store.delete("members", 1).ok
    assert record_store.read("members").value == "1-)Name:CAROL\n"
    assert (tmp_path / "members_tree").exists()


def test_failures_are_logged(store, caplog):
    with caplog.at_level("WARNING", logger="record_store"):
        store.read("missing")
    assert "File operation failed" in caplog.text


def test_deeply_nested_tree_is_corrupt(store, tmp_path):
    store.write("t", "HELLO", True)
    (tmp_path / "t_tree").write_bytes(b"I$|1" * 5000)
    assert store.read("t").error is ErrorKind.CORRUPT
    assert store.append("t", "WORLD").error is ErrorKind.CORRUPT


@pytest.mark.parametrize("operation", [
    lambda s: s.write("t", "Email:john_doe@x.com", True),
    lambda s: s.append("t", "Email:john_doe@x.com"),
    lambda s: s.edit("t", 1, "Email:john_doe@x.com"),
])
def test_underscore_payload_is_rejected_without_writing(store, operation):
    store.write("t", "Email:john@x.com", True)
    before = artifacts(store, "t")
    assert operation(store).error is ErrorKind.INVALID_ARGUMENT
    assert artifacts(store, "t") == before


def test_cleanup_failure_still_reports_io_failure(store, monkeypatch):
    def refuse(*args, **kwargs):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(record_store.os, "replace", refuse)
    monkeypatch.setattr(record_store.Path, "unlink", refuse)
    assert store.write("t", "HELLO", True).error is ErrorKind.IO_FAILURE
