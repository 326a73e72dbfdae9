from __future__ import annotations

import os
from pathlib import Path

import pytest

from atrus.source import MAX_FILE_SIZE_ENV_VAR, get_max_file_size, safe_read


def test_get_max_file_size_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(MAX_FILE_SIZE_ENV_VAR, raising=False)

    assert get_max_file_size(default=123) == 123


def test_get_max_file_size_reads_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(MAX_FILE_SIZE_ENV_VAR, "2048")

    assert get_max_file_size(default=1) == 2048


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_get_max_file_size_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, value: str):
    monkeypatch.setenv(MAX_FILE_SIZE_ENV_VAR, value)

    with pytest.raises(ValueError, match=MAX_FILE_SIZE_ENV_VAR):
        get_max_file_size()


def test_safe_read_returns_bytes(tmp_path: Path):
    target = tmp_path / "doc.md"
    target.write_bytes(b"# a\r\n")

    assert safe_read(target, 100) == b"# a\r\n"


def test_safe_read_enforces_limit(tmp_path: Path):
    target = tmp_path / "doc.md"
    target.write_bytes(b"x" * 11)

    with pytest.raises(IOError, match="maximum allowed size of 10 bytes"):
        safe_read(target, 10)


def test_safe_read_rejects_missing_and_special_files(tmp_path: Path):
    with pytest.raises(IOError):
        safe_read(tmp_path / "nope.md", 100)
    with pytest.raises(IOError, match="not a regular file"):
        safe_read(tmp_path, 100)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_safe_read_follows_symlinks(tmp_path: Path):
    target = tmp_path / "real.md"
    target.write_bytes(b"text")
    link = tmp_path / "link.md"
    try:
        link.symlink_to(target)
    except OSError as error:  # pragma: no cover - platform dependent
        pytest.skip(f"Unable to create symlink: {error}")

    assert safe_read(link, 100) == b"text"
