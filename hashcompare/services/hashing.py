"""
Hashing service for file content fingerprints.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

import blake3

from hashcompare.core.errors import HashError


SUPPORTED_ALGORITHMS = ("sha256", "blake3")

# Files below this size are read with a single call
SINGLE_READ_THRESHOLD = 32 * 1024
# BLAKE3 switches to its internal thread pool above this size
PARALLEL_HASH_THRESHOLD = 128 * 1024 * 1024

CHUNK_SIZE = 1024 * 1024
PARALLEL_CHUNK_SIZE = 16 * 1024 * 1024


@dataclass
class HashProgress:
    """Progress information for hashing operation."""
    bytes_processed: int
    total_bytes: int
    file_path: Optional[Path] = None

    @property
    def percent(self) -> float:
        if self.total_bytes == 0:
            return 100.0
        return self.bytes_processed / self.total_bytes * 100


class HashingService:
    """Service for computing file digests under one or more algorithms."""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        single_read_threshold: int = SINGLE_READ_THRESHOLD,
        parallel_threshold: int = PARALLEL_HASH_THRESHOLD,
    ):
        self.chunk_size = chunk_size
        self.single_read_threshold = single_read_threshold
        self.parallel_threshold = parallel_threshold

    def hash_file(
        self,
        path: Path | str,
        algorithms: Iterable[str],
        progress_callback: Optional[Callable[[HashProgress], None]] = None
    ) -> dict[str, str]:
        """
        Compute digests of a file in a single read pass.

        Args:
            path: Path to the file (symlinks are followed)
            algorithms: Names from SUPPORTED_ALGORITHMS
            progress_callback: Called after each chunk

        Returns:
            Mapping of algorithm name to hex digest

        Raises:
            HashError: If the file cannot be read
        """
        path = Path(path)
        names = tuple(algorithms)

        try:
            file_size = os.stat(path).st_size
            parallel = file_size > self.parallel_threshold
            hashers = {name: self._create_hasher(name, parallel) for name in names}

            with open(path, 'rb') as f:
                if file_size < self.single_read_threshold:
                    data = f.read()
                    for hasher in hashers.values():
                        hasher.update(data)
                else:
                    chunk_size = PARALLEL_CHUNK_SIZE if parallel else self.chunk_size
                    bytes_processed = 0
                    while chunk := f.read(chunk_size):
                        for hasher in hashers.values():
                            hasher.update(chunk)
                        bytes_processed += len(chunk)

                        if progress_callback:
                            progress_callback(HashProgress(
                                bytes_processed=bytes_processed,
                                total_bytes=file_size,
                                file_path=path
                            ))
        except OSError as e:
            logging.warning(f"HashingService - Failed to hash {path}: {e}")
            raise HashError(str(path), e.strerror or str(e)) from e

        return {name: hasher.hexdigest() for name, hasher in hashers.items()}

    def hash_bytes(self, data: bytes, algorithms: Iterable[str]) -> dict[str, str]:
        """Compute digests of in-memory bytes."""
        result = {}
        for name in algorithms:
            hasher = self._create_hasher(name)
            hasher.update(data)
            result[name] = hasher.hexdigest()
        return result

    def _create_hasher(self, name: str, parallel: bool = False):
        """Create a hasher for the given algorithm name."""
        if name == "sha256":
            return hashlib.sha256()
        elif name == "blake3":
            if parallel:
                return blake3.blake3(max_threads=blake3.blake3.AUTO)
            return blake3.blake3()
        else:
            raise ValueError(f"Unknown algorithm: {name}")
