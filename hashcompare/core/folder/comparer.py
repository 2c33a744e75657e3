"""
Diff classification.

Partitions the union of two trees' relative paths into outcomes:
- Match: identities equal under the active strategy
- Differ: identities unequal, sizes or kinds disagree
- Missing in right / Extra in right
- Errored: identity computation failed on a side
"""

from __future__ import annotations

from itertools import chain
from typing import Callable, Mapping, Optional

from hashcompare.core.folder.fingerprint import Fingerprinter
from hashcompare.core.models import (
    ComparisonOutcome,
    ErrorIdentity,
    FileEntry,
    HashIdentity,
    Identity,
    LinkTargetIdentity,
    MetadataIdentity,
    Outcome,
    SymlinkMode,
    path_sort_key,
)


IdentitySource = Callable[[FileEntry], Identity]


def compare_identities(
    left: Identity,
    right: Identity,
    strategy: Optional[Fingerprinter] = None
) -> tuple[Outcome, str]:
    """
    Decide the outcome for two identities of the same relative path.

    Args:
        left: Left identity
        right: Right identity
        strategy: Active strategy; names the digests that must agree.
            Its admitted variants are checked once per run, not here.

    Returns:
        (outcome, reason)

    Raises:
        TypeError: If two content variants are mixed (e.g. hash and metadata)
    """
    if isinstance(left, ErrorIdentity):
        return Outcome.ERRORED, left.reason
    if isinstance(right, ErrorIdentity):
        return Outcome.ERRORED, right.reason

    if type(left) is not type(right):
        if LinkTargetIdentity not in (type(left), type(right)):
            raise TypeError(f"Cannot compare {type(left).__name__} with {type(right).__name__}")
        return Outcome.DIFFER, "kind"

    if isinstance(left, HashIdentity):
        left_digests = left.as_dict()
        right_digests = right.as_dict()
        if strategy is not None:
            names = strategy.digest_names
        else:
            names = tuple(sorted(set(left_digests) | set(right_digests)))

        # Every algorithm must be present on both sides before any verdict
        for name in names:
            if name not in left_digests or name not in right_digests:
                return Outcome.ERRORED, f"missing {name} digest"

        if any(left_digests[name] != right_digests[name] for name in names):
            return Outcome.DIFFER, "content"
        return Outcome.MATCH, ""

    if isinstance(left, MetadataIdentity):
        return (Outcome.MATCH, "") if left == right else (Outcome.DIFFER, "metadata")

    if isinstance(left, LinkTargetIdentity):
        return (Outcome.MATCH, "") if left == right else (Outcome.DIFFER, "link_target")

    raise TypeError(f"Unknown identity variant: {type(left).__name__}")


def classify(
    left_identities: Mapping[str, Identity],
    right_identities: Mapping[str, Identity],
    strategy: Optional[Fingerprinter] = None
) -> list[ComparisonOutcome]:
    """
    Classify two complete identity maps keyed by relative path.

    Returns one outcome per path in either map, ordered by path segments.
    """
    if strategy is not None:
        identities = chain(left_identities.values(), right_identities.values())
        strategy.check_variants(type(identity) for identity in identities)

    outcomes = []
    all_paths = set(left_identities) | set(right_identities)

    for rel_path in sorted(all_paths, key=path_sort_key):
        left = left_identities.get(rel_path)
        right = right_identities.get(rel_path)

        if left is None:
            outcomes.append(ComparisonOutcome(rel_path, Outcome.EXTRA_IN_RIGHT, right_identity=right))
        elif right is None:
            outcomes.append(ComparisonOutcome(rel_path, Outcome.MISSING_IN_RIGHT, left_identity=left))
        else:
            outcome, reason = compare_identities(left, right, strategy)
            outcomes.append(ComparisonOutcome(
                relative_path=rel_path,
                outcome=outcome,
                left_identity=left,
                right_identity=right,
                reason=reason,
            ))

    return outcomes


def classify_pair(
    left: Optional[FileEntry],
    right: Optional[FileEntry],
    strategy: Fingerprinter,
    left_source: Optional[IdentitySource] = None,
    right_source: Optional[IdentitySource] = None
) -> ComparisonOutcome:
    """
    Fingerprint and classify one pair of entries.

    Sizes are compared before either side is fingerprinted; a mismatch is
    a Differ and no digest is computed. Each side may use its own identity
    source (defaults to the strategy). Identities from a custom source are
    precomputed, so they are read first and a recorded error classifies
    the path as Errored.
    """
    if left is None and right is None:
        raise ValueError("classify_pair needs at least one entry")

    left_identity = left_source(left) if left_source and left is not None else None
    right_identity = right_source(right) if right_source and right is not None else None

    for identity in (left_identity, right_identity):
        if isinstance(identity, ErrorIdentity):
            return ComparisonOutcome(
                relative_path=(left or right).relative_path,
                outcome=Outcome.ERRORED,
                left_identity=left_identity,
                right_identity=right_identity,
                left_size=left.size if left else None,
                right_size=right.size if right else None,
                reason=identity.reason,
            )

    if left is None:
        return ComparisonOutcome(right.relative_path, Outcome.EXTRA_IN_RIGHT, right_size=right.size)
    if right is None:
        return ComparisonOutcome(
            left.relative_path,
            Outcome.MISSING_IN_RIGHT,
            left_identity=left_identity,
            left_size=left.size,
        )

    rel_path = left.relative_path
    compare_links = strategy.symlinks == SymlinkMode.COMPARE

    if compare_links and left.is_symlink != right.is_symlink:
        return ComparisonOutcome(
            relative_path=rel_path,
            outcome=Outcome.DIFFER,
            left_size=left.size,
            right_size=right.size,
            reason="kind",
        )

    if not (compare_links and left.is_symlink) and left.size != right.size:
        return ComparisonOutcome(
            relative_path=rel_path,
            outcome=Outcome.DIFFER,
            left_size=left.size,
            right_size=right.size,
            reason="size",
        )

    if left_identity is None:
        left_identity = strategy.fingerprint(left)
    if right_identity is None:
        right_identity = strategy.fingerprint(right)
    outcome, reason = compare_identities(left_identity, right_identity, strategy)

    return ComparisonOutcome(
        relative_path=rel_path,
        outcome=outcome,
        left_identity=left_identity,
        right_identity=right_identity,
        left_size=left.size,
        right_size=right.size,
        reason=reason,
    )
