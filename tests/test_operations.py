import os
import threading

import pytest
import pytest_asyncio

from core.errors import InvalidOperationError, IOFailure, NotADirectoryFailure, NotFoundError, PathEscapeError
from sandbox import AuditLog, OperationExecutor, PathResolver
from storage.models import FileRecord
from storage.providers.sqlite import SQLiteTagIndexRepo
from tests.fakes.collaborators import RecordingOpener


@pytest_asyncio.fixture
async def tag_index(db_path):
    repo = SQLiteTagIndexRepo(db_path)
    yield repo
    await repo.close()


@pytest.fixture
def opener():
    return RecordingOpener()


@pytest.fixture
def executor(sandbox_root, tag_index, opener):
    audit = AuditLog(sandbox_root / "logs" / "operations.log")
    return OperationExecutor(PathResolver(sandbox_root), audit, tag_index, opener=opener)


def _ops(executor):
    return [e.operation for e in executor.audit.read_entries()]


@pytest.mark.asyncio
async def test_write_then_read(executor):
    target = await executor.write("notes/a.txt", "hello")
    assert os.path.isfile(target)
    assert await executor.read("notes/a.txt") == "hello"
    assert _ops(executor) == ["WRITE", "READ"]


@pytest.mark.asyncio
async def test_read_missing_raises_not_found_and_logs_nothing(executor):
    with pytest.raises(NotFoundError):
        await executor.read("missing.txt")
    assert _ops(executor) == []


@pytest.mark.asyncio
async def test_list_dir_sorted(executor, sandbox_root):
    (sandbox_root / "b.txt").write_text("x")
    (sandbox_root / "a.txt").write_text("x")
    (sandbox_root / "c").mkdir()
    assert await executor.list_dir("") == ["a.txt", "b.txt", "c"]


@pytest.mark.asyncio
async def test_list_dir_on_file_raises_not_a_directory(executor, sandbox_root):
    (sandbox_root / "f.txt").write_text("x")
    with pytest.raises(NotADirectoryFailure):
        await executor.list_dir("f.txt")


@pytest.mark.asyncio
async def test_one_level_tree(executor, sandbox_root):
    (sandbox_root / "root.txt").write_text("x")
    (sandbox_root / "notes" / "week1").mkdir(parents=True)
    (sandbox_root / "notes" / "lecture1.pdf").write_text("x")

    tree = await executor.one_level_tree()

    assert tree["name"] == sandbox_root.name
    assert tree["rootFiles"] == ["root.txt"]
    notes = next(f for f in tree["folders"] if f["name"] == "notes")
    assert notes == {"name": "notes", "files": ["lecture1.pdf"], "folders": ["week1"]}
    assert _ops(executor) == ["LIST_TREE"]


@pytest.mark.asyncio
async def test_delete_removes_file_and_index_row(executor, tag_index, sandbox_root):
    target = await executor.write("budget.xlsx", "x")
    await tag_index.insert(FileRecord(path=target, name="budget.xlsx", type="xlsx", tags=["finance"]))

    await executor.delete("budget.xlsx")

    assert not os.path.exists(target)
    assert await tag_index.find_by_path(target) is None
    assert _ops(executor)[-1] == "DELETE"


@pytest.mark.asyncio
async def test_delete_restores_index_row_when_unlink_fails(executor, tag_index, monkeypatch):
    target = await executor.write("keep.txt", "x")
    await tag_index.insert(FileRecord(path=target, name="keep.txt", type="txt", tags=["a"]))

    def _fail(_path):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("sandbox.operations.os.unlink", _fail)
    with pytest.raises(IOFailure):
        await executor.delete("keep.txt")

    restored = await tag_index.find_by_path(target)
    assert restored is not None
    assert restored.tags == ["a"]
    assert os.path.exists(target)


@pytest.mark.asyncio
async def test_delete_missing_and_directory(executor, sandbox_root):
    with pytest.raises(NotFoundError):
        await executor.delete("ghost.txt")
    (sandbox_root / "dir").mkdir()
    with pytest.raises(InvalidOperationError):
        await executor.delete("dir")
    assert (sandbox_root / "dir").exists()


@pytest.mark.asyncio
async def test_rename_creates_destination_dirs(executor, sandbox_root):
    await executor.write("a.txt", "x")
    dest = await executor.rename("a.txt", "archive/2024/a.txt")
    assert os.path.isfile(dest)
    assert not (sandbox_root / "a.txt").exists()
    entry = executor.audit.read_entries()[-1]
    assert entry.operation == "RENAME/MOVE"
    assert " -> " in entry.target


@pytest.mark.asyncio
async def test_copy_file_into_existing_directory(executor, sandbox_root):
    await executor.write("a.txt", "hello")
    (sandbox_root / "backup").mkdir()

    dest = await executor.copy("a.txt", "backup")

    assert dest == os.path.join(str(executor.root), "backup", "a.txt")
    assert (sandbox_root / "backup" / "a.txt").read_text() == "hello"
    assert _ops(executor).count("COPY") == 1


@pytest.mark.asyncio
async def test_copy_directory_into_own_subtree_fails_before_mutation(executor, sandbox_root):
    (sandbox_root / "dirA" / "sub").mkdir(parents=True)
    (sandbox_root / "dirA" / "f.txt").write_text("x")
    before = sorted(str(p.relative_to(sandbox_root)) for p in sandbox_root.rglob("*"))

    with pytest.raises(InvalidOperationError, match="Cannot copy a folder into itself"):
        await executor.copy("dirA", "dirA/sub")

    after = sorted(str(p.relative_to(sandbox_root)) for p in sandbox_root.rglob("*"))
    assert after == before
    assert "COPY" not in _ops(executor)


@pytest.mark.asyncio
async def test_copy_directory_elsewhere(executor, sandbox_root):
    (sandbox_root / "dirA").mkdir()
    (sandbox_root / "dirA" / "f.txt").write_text("x")
    dest = await executor.copy("dirA", "dirB")
    assert os.path.isfile(os.path.join(dest, "f.txt"))


@pytest.mark.asyncio
async def test_properties(executor):
    await executor.write("p.txt", "12345")
    props = await executor.properties("p.txt")
    assert props.size == 5
    assert props.is_file and not props.is_directory
    assert set(props.to_dict()) == {"size", "isFile", "isDirectory", "created", "modified"}


@pytest.mark.asyncio
async def test_search_case_insensitive(executor, sandbox_root):
    (sandbox_root / "Math").mkdir()
    (sandbox_root / "Math" / "math-hw1.pdf").write_text("x")
    (sandbox_root / "other.txt").write_text("x")

    results = await executor.search("MATH")

    assert results == [str(executor.root / "Math"), str(executor.root / "Math" / "math-hw1.pdf")]
    assert executor.audit.read_entries()[-1].target == "MATH"


@pytest.mark.asyncio
async def test_open_uses_opener(executor, opener):
    target = await executor.write("notes/lecture1.pdf", "x")
    await executor.open("notes/lecture1.pdf")
    assert opener.opened == [target]
    assert _ops(executor)[-1] == "OPEN"


@pytest.mark.asyncio
async def test_open_missing_does_not_call_opener(executor, opener):
    with pytest.raises(NotFoundError):
        await executor.open("nope.pdf")
    assert opener.opened == []


@pytest.mark.asyncio
async def test_escape_attempt_rejected_before_any_io(executor):
    with pytest.raises(PathEscapeError):
        await executor.write("../outside.txt", "x")
    assert _ops(executor) == []


@pytest.mark.asyncio
async def test_read_invalid_utf8_raises_io_failure(executor, sandbox_root):
    (sandbox_root / "blob.bin").write_bytes(b"\xff\xfe\x00\x80")

    with pytest.raises(IOFailure, match="not valid UTF-8"):
        await executor.read("blob.bin")
    assert _ops(executor) == []


@pytest.mark.asyncio
async def test_search_query_with_newline_logs_one_entry(executor):
    query = "x\n[2025-01-01T00:00:00.000Z] DELETE -> /home/me/forged.pdf"

    await executor.search(query)

    entries = executor.audit.read_entries()
    assert [e.operation for e in entries] == ["SEARCH"]
    assert entries[0].target == query


@pytest.mark.asyncio
async def test_existence_checks_run_off_the_event_loop(executor, sandbox_root, monkeypatch):
    (sandbox_root / "dir").mkdir()
    (sandbox_root / "dir" / "f.txt").write_text("x")
    loop_thread = threading.get_ident()
    watched = {str(executor.root / "dir"), str(executor.root / "dir" / "f.txt"), str(executor.root / "f2.txt")}
    calls: list[int] = []

    def _recording(fn):
        def _wrapper(path):
            if str(path) in watched:
                calls.append(threading.get_ident())
            return fn(path)

        return _wrapper

    for name in ("exists", "lexists", "isfile", "isdir"):
        monkeypatch.setattr(os.path, name, _recording(getattr(os.path, name)))

    await executor.read("dir/f.txt")
    await executor.list_dir("dir")
    await executor.one_level_tree("dir")
    await executor.properties("dir/f.txt")
    await executor.copy("dir/f.txt", "f2.txt")
    await executor.rename("f2.txt", "dir/f3.txt")
    await executor.open("dir/f.txt")
    await executor.delete("dir/f.txt")

    assert calls
    assert loop_thread not in calls


@pytest.mark.asyncio
async def test_confined_executor_rejects_absolute_paths_outside_root(executor, opener, tmp_path):
    outside = tmp_path / "elsewhere"
    outside.mkdir()
    (outside / "secret.txt").write_text("x")
    confined = executor.confined()

    with pytest.raises(PathEscapeError):
        await confined.open(str(outside / "secret.txt"))
    with pytest.raises(PathEscapeError):
        await confined.one_level_tree(str(outside))
    assert opener.opened == []

    inside = await executor.write("notes/a.txt", "x")
    assert await confined.open(inside) == inside
    assert confined.audit is executor.audit
    assert confined.confined() is confined
