"""Tests for folobuild.walker."""

from __future__ import annotations

from pathlib import Path

import pytest

from folobuild.walker import iter_files, relative_to
from tests._fixtures.doubles import deny_listing


def _touch(path: Path, content: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_iter_files_returns_sorted_relative_order(tmp_path: Path) -> None:
    for name in ["b.js", "a/z.js", "a/b/c.js", "A.js", "c.css"]:
        _touch(tmp_path / name)

    found = [path.relative_to(tmp_path).as_posix() for path in iter_files(tmp_path)]

    assert found == sorted(["b.js", "a/z.js", "a/b/c.js", "A.js", "c.css"])


def test_iter_files_filters_by_extension(tmp_path: Path) -> None:
    _touch(tmp_path / "home.js")
    _touch(tmp_path / "home.json")
    _touch(tmp_path / "nested" / "card.js")

    found = [path.name for path in iter_files(tmp_path, ".js")]

    assert found == ["home.js", "card.js"]


def test_iter_files_missing_directory_is_empty(tmp_path: Path) -> None:
    assert iter_files(tmp_path / "missing") == []


def test_iter_files_handles_deep_nesting(tmp_path: Path) -> None:
    current = tmp_path
    for index in range(150):
        current = current / f"d{index}"
    _touch(current / "leaf.js")

    found = iter_files(tmp_path)

    assert len(found) == 1
    assert found[0].name == "leaf.js"


def test_iter_files_skips_os_metadata_files(tmp_path: Path) -> None:
    _touch(tmp_path / ".DS_Store")
    _touch(tmp_path / "app.js")

    assert [path.name for path in iter_files(tmp_path)] == ["app.js"]


def test_relative_to_falls_back_to_original_path(tmp_path: Path) -> None:
    inside = tmp_path / "src" / "pages" / "home.js"
    outside = Path("/elsewhere/file.js")

    assert relative_to(inside, tmp_path) == "src/pages/home.js"
    assert relative_to(outside, tmp_path) == "/elsewhere/file.js"


def test_iter_files_reports_unreadable_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "locked").mkdir()
    (tmp_path / "locked" / "secret.css").write_text("a{}", encoding="utf-8")
    (tmp_path / "open.css").write_text("b{}", encoding="utf-8")
    deny_listing(monkeypatch, tmp_path / "locked")
    failures: list[tuple[Path, OSError]] = []

    found = iter_files(tmp_path, on_error=lambda path, exc: failures.append((path, exc)))

    assert [path.name for path in found] == ["open.css"]
    assert [path.name for path, _ in failures] == ["locked"]
    assert isinstance(failures[0][1], PermissionError)


def test_iter_files_without_handler_propagates(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "locked").mkdir()
    deny_listing(monkeypatch, tmp_path / "locked")

    with pytest.raises(PermissionError):
        iter_files(tmp_path)
