"""Filesystem helpers for reading Markdown sources."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from .constants import DEFAULT_MAX_FILE_SIZE

MAX_FILE_SIZE_ENV_VAR = "ATRUS_MAX_FILE_SIZE"


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Resolve the maximum allowed file size.

    Args:
        default: Fallback value in bytes when the environment variable is unset.

    Returns:
        int: Maximum allowed file size in bytes.

    Raises:
        ValueError: If the environment value is not a positive integer.

    Examples:
        os.environ["ATRUS_MAX_FILE_SIZE"] = "204800"
        limit = get_max_file_size(default=102400)
    """
    env_value = os.environ.get(MAX_FILE_SIZE_ENV_VAR)
    if env_value is None:
        return default

    try:
        max_size = int(env_value)
    except ValueError as error:
        error_message = (
            f"Invalid value for {MAX_FILE_SIZE_ENV_VAR}: {env_value} (expected positive integer)"
        )
        raise ValueError(error_message) from error

    if max_size <= 0:
        error_message = f"{MAX_FILE_SIZE_ENV_VAR} must be a positive integer, got {max_size}."
        raise ValueError(error_message)

    return max_size


def collect_file_stat(filepath: Path) -> os.stat_result:
    """Return stat information for a regular file.

    Raises:
        IOError: If the path is inaccessible or not a regular file.
    """
    try:
        stat_result = os.stat(filepath)
    except OSError as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error

    if not stat.S_ISREG(stat_result.st_mode):
        error_message = f"{filepath} is not a regular file."
        raise IOError(error_message)

    return stat_result


def enforce_file_size(stat_result: os.stat_result, max_size: int, filepath: Path):
    """Guard against files that exceed the configured maximum size.

    Raises:
        IOError: If `stat_result.st_size` exceeds `max_size`.

    Examples:
        enforce_file_size(os.stat("README.md"), 102400, Path("README.md"))
    """
    if stat_result.st_size > max_size:
        error_message = f"{filepath} exceeds the maximum allowed size of {max_size} bytes."
        raise IOError(error_message)


def safe_read(filepath: Path, max_size: int) -> bytes:
    """Read a file's bytes after checking that it is a regular, small enough file.

    Args:
        filepath: Path to the file.
        max_size: Maximum allowed size in bytes.

    Returns:
        bytes: Raw file content; decoding is left to the caller.

    Raises:
        IOError: If the path is missing, inaccessible, not a file, or too large.

    Examples:
        content = safe_read(Path("README.md"), get_max_file_size())
    """
    stat_result = collect_file_stat(filepath)
    enforce_file_size(stat_result, max_size, filepath)
    try:
        with open(filepath, "rb") as handle:
            return handle.read()
    except (
        FileNotFoundError,
        PermissionError,
        IsADirectoryError,
        NotADirectoryError,
    ) as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error
