"""
Fingerprint strategies.

A strategy is selected once per run and fixes which identity variants
the run may produce:
- Metadata: size and modification time, no content read
- Hash: SHA-256, BLAKE3 or both, from a single read pass
Under symlink mode ``compare`` link entries get their unresolved target
as identity; under ``follow`` they are hashed through the link.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from hashcompare.core.errors import ConfigError, EntryIOError
from hashcompare.core.models import (
    Algorithm,
    ErrorIdentity,
    FileEntry,
    HashIdentity,
    Identity,
    LinkTargetIdentity,
    MetadataIdentity,
    SymlinkMode,
)
from hashcompare.services.hashing import HashingService


class Fingerprinter(ABC):
    """Computes the identity of one entry under a fixed strategy."""

    algorithm: Algorithm
    needs_content: bool = False

    def __init__(self, symlinks: SymlinkMode = SymlinkMode.IGNORE):
        self.symlinks = symlinks
        admitted = {self.content_variant, ErrorIdentity}
        if symlinks == SymlinkMode.COMPARE:
            admitted.add(LinkTargetIdentity)
        # Identity variants this strategy may produce
        self.variants: frozenset[type] = frozenset(admitted)

    @property
    @abstractmethod
    def content_variant(self) -> type:
        """Identity variant produced for regular content."""
        pass

    @property
    def digest_names(self) -> tuple[str, ...]:
        return self.algorithm.digest_names

    def check_variants(self, variants: Iterable[type]) -> None:
        """
        Reject identity variants this strategy cannot compare.

        Called once per run, where identities come from outside the
        strategy (e.g. a snapshot) or are supplied ready-made.

        Raises:
            TypeError: If any variant is not admitted
        """
        foreign = sorted(v.__name__ for v in set(variants) - self.variants)
        if foreign:
            raise TypeError(
                f"Identity variants {', '.join(foreign)} are not admitted "
                f"by the {self.algorithm.value} strategy"
            )

    def fingerprint(self, entry: FileEntry) -> Identity:
        """Compute the identity of an entry. Never raises for I/O failures."""
        if entry.is_symlink and self.symlinks == SymlinkMode.COMPARE:
            return LinkTargetIdentity(entry.symlink_target or "")
        return self._fingerprint_content(entry)

    @abstractmethod
    def _fingerprint_content(self, entry: FileEntry) -> Identity:
        pass


class MetadataFingerprinter(Fingerprinter):
    """O(1) identity from size and modification time."""

    algorithm = Algorithm.METADATA

    @property
    def content_variant(self) -> type:
        return MetadataIdentity

    def _fingerprint_content(self, entry: FileEntry) -> Identity:
        return MetadataIdentity(size=entry.size, modified_ns=entry.modified_ns)


class HashFingerprinter(Fingerprinter):
    """Content digests under one or more algorithms."""

    needs_content = True

    def __init__(
        self,
        algorithm: Algorithm = Algorithm.BLAKE3,
        symlinks: SymlinkMode = SymlinkMode.IGNORE,
        hashing_service: Optional[HashingService] = None
    ):
        if not algorithm.is_hash:
            raise ConfigError(f"Not a hash algorithm: {algorithm.value}")
        super().__init__(symlinks)
        self.algorithm = algorithm
        self.hashing = hashing_service or HashingService()

    @property
    def content_variant(self) -> type:
        return HashIdentity

    def _fingerprint_content(self, entry: FileEntry) -> Identity:
        try:
            digests = self.hashing.hash_file(entry.path, self.digest_names)
        except EntryIOError as e:
            logging.warning(f"HashFingerprinter - Could not fingerprint {entry.relative_path}: {e.message}")
            return ErrorIdentity(e.message)
        return HashIdentity.from_mapping(digests)


def select_fingerprinter(
    algorithm: Algorithm,
    symlinks: SymlinkMode = SymlinkMode.IGNORE,
    hashing_service: Optional[HashingService] = None
) -> Fingerprinter:
    """Select the strategy for a run."""
    if algorithm == Algorithm.METADATA:
        return MetadataFingerprinter(symlinks)
    return HashFingerprinter(algorithm, symlinks, hashing_service)
