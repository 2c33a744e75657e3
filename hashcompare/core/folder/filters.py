"""
Path filtering for tree traversal.

Decides whether a discovered path is admitted, using:
- Hidden-file policy
- Extension allow-list
- Ignore patterns (user supplied, plus .gitignore / .ignore files)
- Symlink policy
- Maximum depth relative to the comparison root

Ignore patterns follow gitignore semantics. Within one pattern source the
last matching pattern wins, so a negated pattern re-includes a path. Across
ignore files the deepest file with a matching pattern decides. A path
matched by a user pattern is excluded regardless of ignore files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pathspec

from hashcompare.core.models import ScanOptions, SymlinkMode


IGNORE_FILE_NAMES = ('.gitignore', '.ignore')


class PatternMatcher:
    """
    Gitignore-style matcher for one pattern source.

    Patterns are anchored at ``base``, the relative directory holding the
    ignore file (empty for the comparison root).
    """

    def __init__(self, patterns: Iterable[str], base: tuple[str, ...] = ()):
        lines = []
        for line in patterns:
            line = line.rstrip('\r\n')
            if not line.strip() or line.startswith('#'):
                continue
            lines.append(line)

        self.base = base
        self.patterns = tuple(lines)
        self._file_rules = self._compile(lines)
        self._dir_rules = self._compile([self._directory_pattern(p) for p in lines])

    def __bool__(self) -> bool:
        return bool(self.patterns)

    @staticmethod
    def _compile(lines: list[str]) -> tuple[pathspec.GitIgnoreSpec, ...]:
        """Full spec, plus exclude-only and negation-only specs to detect 'no match'."""
        return (
            pathspec.GitIgnoreSpec.from_lines(lines),
            pathspec.GitIgnoreSpec.from_lines([p for p in lines if not p.startswith('!')]),
            pathspec.GitIgnoreSpec.from_lines([p[1:] for p in lines if p.startswith('!')]),
        )

    @staticmethod
    def _directory_pattern(line: str) -> str:
        """
        Rewrite a contents-only pattern for directory checks.

        ``foo/**`` and ``foo/*`` match what is inside ``foo`` but not ``foo``
        itself, so a negation below it can still re-include a file. As
        ``foo/*/`` they still match every subdirectory of ``foo``.
        """
        body = line.rstrip()
        for suffix in ('/**', '/*'):
            if body.endswith(suffix) and not body.endswith('\\' + suffix):
                return body[:-len(suffix)] + '/*/'
        return line

    def decide(self, parts: Sequence[str], is_dir: bool = False) -> Optional[bool]:
        """
        Evaluate a path against this source.

        Returns:
            True if excluded, False if re-included by a negated pattern,
            None if no pattern matches the path
        """
        if tuple(parts[:len(self.base)]) != self.base:
            return None

        rel_path = "/".join(parts[len(self.base):])
        if not rel_path:
            return None
        if is_dir:
            rel_path += "/"
            spec, excludes, reincludes = self._dir_rules
        else:
            spec, excludes, reincludes = self._file_rules

        if not (excludes.match_file(rel_path) or reincludes.match_file(rel_path)):
            return None
        return spec.match_file(rel_path)

    def matches(self, parts: Sequence[str], is_dir: bool = False) -> bool:
        """
        Check if a path matches the patterns.

        Returns True if the path should be excluded.
        """
        return bool(self.decide(parts, is_dir))

    @classmethod
    def from_ignore_file(cls, ignore_path: Path, base: tuple[str, ...] = ()) -> 'PatternMatcher':
        """Create a matcher from a .gitignore-format file."""
        patterns: list[str] = []

        try:
            with open(ignore_path, 'r', encoding='utf-8', errors='ignore') as f:
                patterns = f.readlines()
        except OSError as e:
            logging.warning(f"PatternMatcher - Could not read ignore file {ignore_path}: {e}")

        return cls(patterns, base)


def load_ignore_rules(directory: Path, base: tuple[str, ...]) -> list[PatternMatcher]:
    """Load the ignore files present in ``directory``, lowest precedence first."""
    rules = []
    for name in IGNORE_FILE_NAMES:
        ignore_path = directory / name
        if ignore_path.is_file():
            matcher = PatternMatcher.from_ignore_file(ignore_path, base)
            if matcher:
                rules.append(matcher)
    return rules


def file_extension(name: str) -> str:
    """Lowercased extension without the dot; dotfiles have none."""
    return os.path.splitext(name)[1].lstrip('.').lower()


class PathFilter:
    """
    Admits or rejects discovered paths.

    Decisions depend only on the path, its kind and the ignore rules in
    effect for its directory, so they are deterministic and independent of
    traversal order.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()
        self._user_matcher = PatternMatcher(self.options.ignore_patterns)

    def admit(
        self,
        parts: Sequence[str],
        is_dir: bool = False,
        is_symlink: bool = False,
        ignore_rules: Sequence[PatternMatcher] = ()
    ) -> bool:
        """
        Check if a path should be included.

        Args:
            parts: Path segments relative to the comparison root
            is_dir: Directory to be traversed (not an entry)
            is_symlink: Path is a symbolic link
            ignore_rules: Ignore-file matchers in effect, shallowest first
        """
        options = self.options
        depth = len(parts)

        if options.max_depth is not None:
            # Directories at the depth limit cannot contain admitted files
            if depth > options.max_depth or (is_dir and depth >= options.max_depth):
                return False

        if not options.include_hidden and parts[-1].startswith('.'):
            return False

        if is_symlink and options.symlinks == SymlinkMode.IGNORE:
            return False

        if self._user_matcher.matches(parts, is_dir):
            return False

        if self.is_ignored(parts, is_dir, ignore_rules):
            return False

        if not is_dir and options.extensions:
            if file_extension(parts[-1]) not in options.extensions:
                return False

        return True

    @staticmethod
    def is_ignored(
        parts: Sequence[str],
        is_dir: bool,
        ignore_rules: Sequence[PatternMatcher]
    ) -> bool:
        """Apply ignore-file rules; the deepest matching rule decides."""
        verdict: Optional[bool] = None
        for matcher in ignore_rules:
            decision = matcher.decide(parts, is_dir)
            if decision is not None:
                verdict = decision
        return bool(verdict)
