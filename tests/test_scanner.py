"""Tests for settled file discovery."""

import os
from pathlib import Path

import pytest

from dcm_file_sort.core.scanner import FileScanner
from dcm_file_sort.exceptions import DicomSortError


def _touch(path: Path, content: bytes = b"x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def _last_change(path: Path) -> float:
    stat = os.stat(path)
    return FileScanner.last_change(stat.st_mtime, getattr(stat, "st_birthtime", None))


class TestFileScanner:
    """Test FileScanner."""

    def test_settle_time_boundaries(self, tmp_path):
        path = _touch(tmp_path / "a.dcm")
        changed = _last_change(path)

        too_young = FileScanner(tmp_path, settle_delay=10, max_batch=10, clock=lambda: changed + 9)
        settled = FileScanner(tmp_path, settle_delay=10, max_batch=10, clock=lambda: changed + 11)

        assert too_young.scan() == []
        assert [c.path for c in settled.scan()] == [path]

    def test_candidate_fields(self, tmp_path):
        path = _touch(tmp_path / "a.dcm", b"12345")
        changed = _last_change(path)

        [candidate] = FileScanner(tmp_path, 0, 10, clock=lambda: changed + 1).scan()

        assert candidate.size == 5
        assert candidate.name == "a.dcm"
        assert candidate.modified_at.timestamp() == pytest.approx(os.stat(path).st_mtime)
        assert candidate.discovered_at.timestamp() == pytest.approx(changed + 1)

    def test_uses_newest_timestamp(self):
        assert FileScanner.last_change(100.0, None) == 100.0
        assert FileScanner.last_change(100.0, 150.0) == 150.0
        assert FileScanner.last_change(200.0, 150.0) == 200.0

    def test_stable_sorted_order(self, tmp_path):
        for name in ["c.dcm", "a.dcm", "b/z.dcm", "b/a.dcm"]:
            _touch(tmp_path / name)

        scanner = FileScanner(tmp_path, 0, 100, clock=lambda: 4e9)
        names = [c.path.relative_to(tmp_path).as_posix() for c in scanner.scan()]

        assert names == ["a.dcm", "b/a.dcm", "b/z.dcm", "c.dcm"]

    def test_batch_limit(self, tmp_path):
        for i in range(10):
            _touch(tmp_path / f"{i:02d}.dcm")

        first = FileScanner(tmp_path, 0, 4, clock=lambda: 4e9).scan()

        assert [c.name for c in first] == ["00.dcm", "01.dcm", "02.dcm", "03.dcm"]

    def test_non_recursive(self, tmp_path):
        _touch(tmp_path / "top.dcm")
        _touch(tmp_path / "sub" / "nested.dcm")

        scanner = FileScanner(tmp_path, 0, 10, recursive=False, clock=lambda: 4e9)

        assert [c.name for c in scanner.scan()] == ["top.dcm"]

    def test_symlinks_are_skipped(self, tmp_path):
        target = _touch(tmp_path / "elsewhere" / "real.dcm")
        root = tmp_path / "input"
        root.mkdir()
        (root / "link.dcm").symlink_to(target)

        assert FileScanner(root, 0, 10, clock=lambda: 4e9).scan() == []

    def test_empty_directory(self, tmp_path):
        assert FileScanner(tmp_path, 0, 10).scan() == []

    def test_missing_root(self, tmp_path):
        with pytest.raises(DicomSortError, match="does not exist"):
            FileScanner(tmp_path / "missing", 0, 10).scan()
