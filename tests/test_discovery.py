"""Tests for shardrun.sharding.discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from shardrun.sharding.discovery import DiscoveryError, discover_units, matches_pattern


def _touch(root: Path, *rel_paths: str) -> None:
    for rel in rel_paths:
        f = root / rel
        f.parent.mkdir(parents=True, exist_ok=True)
        f.touch()


class TestMatchesPattern:
    def test_star_matches_any_run(self) -> None:
        assert matches_pattern("login.test.ts", "*.test.ts")
        assert matches_pattern(".test.ts", "*.test.ts")

    def test_question_matches_single_char(self) -> None:
        assert matches_pattern("a1.spec.js", "a?.spec.js")
        assert not matches_pattern("a12.spec.js", "a?.spec.js")

    def test_anchored_at_both_ends(self) -> None:
        assert not matches_pattern("login.test.ts.bak", "*.test.ts")
        assert not matches_pattern("xlogin.test.ts", "login*")

    def test_dot_is_literal(self) -> None:
        assert not matches_pattern("loginXtestXts", "*.test.ts")

    def test_case_sensitive(self) -> None:
        assert not matches_pattern("LOGIN.TEST.TS", "*.test.ts")


class TestDiscoverUnits:
    def test_discovers_matching_files_recursively(self, tmp_path: Path) -> None:
        _touch(
            tmp_path,
            "api/user.test.ts",
            "ui/login.test.ts",
            "ui/deep/nested/cart.test.ts",
            "ui/helpers.ts",
            "README.md",
        )

        result = discover_units(tmp_path, "*.test.ts")

        assert {p.name for p in result} == {"user.test.ts", "login.test.ts", "cart.test.ts"}
        assert all(p.is_file() for p in result)

    def test_depth_first_lexicographic_order(self, tmp_path: Path) -> None:
        _touch(tmp_path, "c.test.ts", "b.test.ts", "a/z.test.ts", "a/b/y.test.ts", "d/x.test.ts")

        result = discover_units(tmp_path, "*.test.ts")

        assert [p.relative_to(tmp_path).as_posix() for p in result] == [
            "a/b/y.test.ts",
            "a/z.test.ts",
            "b.test.ts",
            "c.test.ts",
            "d/x.test.ts",
        ]

    def test_paths_are_joined_onto_root(self, tmp_path: Path) -> None:
        _touch(tmp_path, "sub/one.test.ts")
        result = discover_units(tmp_path, "*.test.ts")
        assert result == [tmp_path / "sub" / "one.test.ts"]

    def test_repeated_scans_are_identical(self, tmp_path: Path) -> None:
        _touch(tmp_path, *(f"dir{i % 3}/unit{i}.test.ts" for i in range(12)))
        assert discover_units(tmp_path, "*.test.ts") == discover_units(tmp_path, "*.test.ts")

    def test_directories_matching_pattern_are_not_units(self, tmp_path: Path) -> None:
        (tmp_path / "weird.test.ts").mkdir()
        _touch(tmp_path, "weird.test.ts/real.test.ts")

        result = discover_units(tmp_path, "*.test.ts")
        assert [p.name for p in result] == ["real.test.ts"]

    def test_no_matches_returns_empty(self, tmp_path: Path) -> None:
        _touch(tmp_path, "main.py")
        assert discover_units(tmp_path, "*.test.ts") == []

    def test_accepts_string_root(self, tmp_path: Path) -> None:
        _touch(tmp_path, "a.test.ts")
        assert len(discover_units(str(tmp_path), "*.test.ts")) == 1

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(DiscoveryError, match="does not exist"):
            discover_units(tmp_path / "missing", "*.test.ts")

    def test_file_root_raises(self, tmp_path: Path) -> None:
        _touch(tmp_path, "a.test.ts")
        with pytest.raises(DiscoveryError, match="not a directory"):
            discover_units(tmp_path / "a.test.ts", "*.test.ts")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_cycle_is_not_followed_twice(self, tmp_path: Path) -> None:
        _touch(tmp_path, "suite/a.test.ts")
        (tmp_path / "suite" / "loop").symlink_to(tmp_path / "suite", target_is_directory=True)

        result = discover_units(tmp_path, "*.test.ts")

        assert result == [tmp_path / "suite" / "a.test.ts"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlinked_directory_is_followed_once(self, tmp_path: Path) -> None:
        _touch(tmp_path, "shared/s.test.ts")
        (tmp_path / "link").symlink_to(tmp_path / "shared", target_is_directory=True)

        result = discover_units(tmp_path, "*.test.ts")

        # "link" sorts before "shared", so the tree is reached through the link first
        assert result == [tmp_path / "link" / "s.test.ts"]

    def test_directory_vanishing_mid_scan_is_skipped(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        _touch(tmp_path, "a/one.test.ts", "b/two.test.ts", "c/three.test.ts")
        real_scandir = os.scandir

        def _scandir(path: os.PathLike[str] | str) -> object:
            if Path(path).name == "b":
                raise FileNotFoundError(2, "No such file or directory", str(path))
            return real_scandir(path)

        monkeypatch.setattr(os, "scandir", _scandir)

        with caplog.at_level(logging.WARNING):
            result = discover_units(tmp_path, "*.test.ts")

        assert [p.name for p in result] == ["one.test.ts", "three.test.ts"]
        assert "Cannot read directory" in caplog.text

    def test_root_vanishing_mid_scan_raises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _scandir(path: os.PathLike[str] | str) -> object:
            raise FileNotFoundError(2, "No such file or directory", str(path))

        monkeypatch.setattr(os, "scandir", _scandir)

        with pytest.raises(DiscoveryError, match="Cannot read discovery root"):
            discover_units(tmp_path, "*.test.ts")
