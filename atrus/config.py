"""Configuration loading and management."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
import tomllib


@dataclass(frozen=True)
class ParserConfig:
    """Options controlling how Markdown text is parsed.

    Attributes:
        max_nesting_depth: Maximum number of nested container blocks (block
            quotes, lists, list items, directives). Container markers beyond
            this depth are read as paragraph text.
        front_matter: Whether a leading ``---`` block is read as YAML front matter.
        math: Whether ``$...$`` and ``$$...$$`` spans are read as math.
        roles: Whether ``{name}`code``` spans are read as roles.
        block_breaks: Whether top-level ``+++`` lines split the document into
            blocks.
        max_file_size: Maximum file size in bytes accepted by ``parse_file``.

    Examples:
        ParserConfig(math=False, max_nesting_depth=16)
    """

    max_nesting_depth: int = 64
    front_matter: bool = True
    math: bool = True
    roles: bool = True
    block_breaks: bool = True
    max_file_size: int = 10 * 1024 * 1024


class ConfigError(ValueError):
    """Exception raised when configuration values are invalid.

    Examples:
        raise ConfigError("`max_nesting_depth` must be a positive integer")
    """


_BOOLEAN_FIELDS = ("front_matter", "math", "roles", "block_breaks")
_INTEGER_FIELDS = ("max_nesting_depth", "max_file_size")


def load_config(search_path: Path) -> ParserConfig:
    """Load configuration from the nearest config file.

    Walks parent directories from `search_path` to the filesystem root, reading
    the ``[tool.atrus]`` table from `pyproject.toml` and the ``[atrus]`` or
    ``[tool.atrus]`` table from `.atrus.toml` when present. Returns default
    values when no configuration is found. TOML files that cannot be read or
    decoded are skipped.

    Args:
        search_path: Directory used as the starting point for configuration lookup.

    Returns:
        ParserConfig: Loaded configuration with defaults applied when necessary.

    Raises:
        ConfigError: If a matching table is not a mapping or contains unsupported keys.

    Examples:
        load_config(Path("docs"))
    """
    current = search_path.resolve()

    while True:
        pyproject_config = _load_from_file(
            current / "pyproject.toml", table_paths=[("tool", "atrus")]
        )
        if pyproject_config is not None:
            return pyproject_config

        dotfile_config = _load_from_file(
            current / ".atrus.toml",
            table_paths=[("atrus",), ("tool", "atrus")],
        )
        if dotfile_config is not None:
            return dotfile_config

        parent = current.parent
        if parent == current:
            break
        current = parent

    return ParserConfig()


_MISSING = object()


def _load_from_file(config_file: Path, table_paths: list[tuple[str, ...]]) -> ParserConfig | None:
    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as stream:
            data = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        raw_config = _extract_table(data, table_path)
        if raw_config is _MISSING:
            continue
        return _build_config_from_raw(raw_config, config_file, table_path)

    return None


def _extract_table(data: object, table_path: tuple[str, ...]) -> object:
    current = data
    for key in table_path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _build_config_from_raw(
    raw_config: object, config_file: Path, table_path: tuple[str, ...]
) -> ParserConfig:
    table_display = ".".join(table_path)

    if raw_config is None or raw_config == {}:
        return ParserConfig()

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}")

    # TOML keys are conventionally kebab-case
    normalized = {key.replace("-", "_"): value for key, value in raw_config.items()}
    try:
        return ParserConfig(**normalized)
    except TypeError as error:
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}") from error


def validate_config(config: ParserConfig) -> None:
    """Validate a `ParserConfig` instance.

    Args:
        config: Configuration to validate.

    Raises:
        ConfigError: If a flag is not a boolean or a limit is not a positive integer.

    Examples:
        validate_config(ParserConfig(max_nesting_depth=8))
    """
    for name in _BOOLEAN_FIELDS:
        if not isinstance(getattr(config, name), bool):
            raise ConfigError(f"`{name}` must be a boolean")

    for name in _INTEGER_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"`{name}` must be an integer")
        if value <= 0:
            raise ConfigError(f"`{name}` must be a positive integer")


def apply_overrides(config: ParserConfig, **overrides: object) -> ParserConfig:
    """Apply override values to a `ParserConfig`.

    Args:
        config: Base configuration to update.
        overrides: Override values keyed by field name; None values are ignored.

    Returns:
        ParserConfig: New configuration, or `config` itself when nothing changes.

    Raises:
        ConfigError: If an override name is not a `ParserConfig` field.

    Examples:
        updated = apply_overrides(config, math=False)
    """
    known = {field.name for field in fields(ParserConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration option(s): {', '.join(unknown)}")

    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)


def build_config(search_path: Path, **overrides: object) -> ParserConfig:
    """Load, override, and validate configuration.

    Args:
        search_path: Directory where configuration files are resolved.
        overrides: Override values keyed by configuration attributes; None values
            are ignored.

    Returns:
        ParserConfig: Validated configuration ready for parsing.

    Raises:
        ConfigError: If configuration loading or validation fails.

    Examples:
        config = build_config(Path.cwd(), roles=False)
    """
    config = load_config(search_path)
    config = apply_overrides(config, **overrides)
    validate_config(config)
    return config
