"""
Run configuration and persisted defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from hashcompare.core.errors import ConfigError
from hashcompare.core.models import (
    Algorithm,
    RunMode,
    ScanOptions,
    SymlinkMode,
    normalize_extensions,
)


_ALGORITHM_ALIASES = {
    'hash-a': Algorithm.BLAKE3,
    'hash-b': Algorithm.SHA256,
}


def parse_enum(enum_class: type, value: Any, option: str) -> Enum:
    """
    Parse an enum from its value or name, case-insensitively.

    Raises:
        ConfigError: If the value is not recognized
    """
    if isinstance(value, enum_class):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if enum_class is Algorithm and text in _ALGORITHM_ALIASES:
            return _ALGORITHM_ALIASES[text]
        for member in enum_class:
            if member.value == text or member.name.lower() == text:
                return member
    choices = ", ".join(str(m.value) for m in enum_class)
    raise ConfigError(f"Invalid value for {option}: {value!r} (expected one of: {choices})")


def _parse_optional_int(value: Any, option: str) -> Optional[int]:
    if value is None or value == "auto" or value == "unbounded":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {option}: {value!r}") from None


def _parse_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(',') if part.strip()]
    return [str(part) for part in value]


@dataclass
class RunConfig:
    """Resolved configuration for a compare, snapshot, verify or sync run."""
    mode: RunMode = RunMode.BATCH
    algorithm: Algorithm = Algorithm.BLAKE3

    # Traversal
    recursion_depth: Optional[int] = None
    symlinks: SymlinkMode = SymlinkMode.IGNORE
    include_hidden: bool = False
    extension_filter: frozenset[str] = frozenset()
    ignore_patterns: list[str] = field(default_factory=list)
    respect_ignore_files: bool = True

    # Execution
    thread_count: Optional[int] = None
    sort_output: bool = True
    verbose: bool = False

    # Sync
    sync_dry_run: bool = True
    sync_delete_extraneous: bool = False

    def validate(self) -> 'RunConfig':
        """
        Check option values.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If an option is out of range
        """
        if self.recursion_depth is not None and self.recursion_depth < 0:
            raise ConfigError(f"recursion_depth must be >= 0, got {self.recursion_depth}")
        if self.thread_count is not None and self.thread_count < 1:
            raise ConfigError(f"thread_count must be >= 1, got {self.thread_count}")
        return self

    @property
    def effective_threads(self) -> int:
        """Worker pool size; defaults to the available parallelism."""
        return self.thread_count or os.cpu_count() or 1

    def scan_options(self) -> ScanOptions:
        return ScanOptions(
            max_depth=self.recursion_depth,
            symlinks=self.symlinks,
            include_hidden=self.include_hidden,
            extensions=normalize_extensions(self.extension_filter),
            ignore_patterns=tuple(self.ignore_patterns),
            respect_ignore_files=self.respect_ignore_files,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'RunConfig':
        """
        Build a configuration from loosely typed values (CLI or JSON).

        Accepts enum values or names, ``"auto"`` for thread_count and
        ``"unbounded"`` for recursion_depth. ``no_recursive`` is a shorthand
        for depth 1 and ``no_delete`` disables deletion; each conflicts with
        its counterpart.

        Raises:
            ConfigError: For unknown keys, invalid values or conflicts
        """
        data = dict(data)
        known = {f.name for f in fields(cls)} | {'no_recursive', 'no_delete'}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")

        depth = _parse_optional_int(data.get('recursion_depth'), 'recursion_depth')
        if data.get('no_recursive'):
            if depth is not None:
                raise ConfigError("no_recursive conflicts with recursion_depth")
            depth = 1

        delete_extraneous = bool(data.get('sync_delete_extraneous', False))
        if data.get('no_delete') and delete_extraneous:
            raise ConfigError("no_delete conflicts with sync_delete_extraneous")

        config = cls(
            mode=parse_enum(RunMode, data.get('mode', RunMode.BATCH), 'mode'),
            algorithm=parse_enum(Algorithm, data.get('algorithm', Algorithm.BLAKE3), 'algorithm'),
            recursion_depth=depth,
            symlinks=parse_enum(SymlinkMode, data.get('symlinks', SymlinkMode.IGNORE), 'symlinks'),
            include_hidden=bool(data.get('include_hidden', False)),
            extension_filter=normalize_extensions(_parse_list(data.get('extension_filter'))),
            ignore_patterns=_parse_list(data.get('ignore_patterns')),
            respect_ignore_files=bool(data.get('respect_ignore_files', True)),
            thread_count=_parse_optional_int(data.get('thread_count'), 'thread_count'),
            sort_output=bool(data.get('sort_output', True)),
            verbose=bool(data.get('verbose', False)),
            sync_dry_run=bool(data.get('sync_dry_run', True)),
            sync_delete_extraneous=delete_extraneous,
        )
        return config.validate()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, (set, frozenset)):
                return sorted(obj)
            elif isinstance(obj, list):
                return [convert(item) for item in obj]
            return obj

        return {f.name: convert(getattr(self, f.name)) for f in fields(self)}


class SettingsManager:
    """Manager for loading/saving default run configuration."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or self._get_default_path()
        self._settings: Optional[RunConfig] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            # Windows
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'HashCompare' / 'settings.json'
        else:
            # Linux/Mac
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'hashcompare' / 'settings.json'

    @property
    def settings(self) -> RunConfig:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> RunConfig:
        """Load settings from disk, falling back to defaults."""
        if not self.settings_path.exists():
            return RunConfig()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return RunConfig.from_mapping(data)
        except (OSError, ValueError, ConfigError) as e:
            logging.warning(f"SettingsManager - Could not load {self.settings_path}, using defaults: {e}")
            return RunConfig()

    def save(self, settings: Optional[RunConfig] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(settings.to_dict(), f, indent=2)
        except OSError as e:
            logging.error(f"SettingsManager - Could not save {self.settings_path}: {e}")
            return False

        self._settings = settings
        return True

    def reset(self) -> RunConfig:
        """Reset to default settings."""
        self._settings = RunConfig()
        self.save()
        return self._settings
