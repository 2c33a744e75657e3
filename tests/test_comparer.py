"""Tests for identity comparison and per-path classification."""

from __future__ import annotations

import unittest
from pathlib import Path

from hashcompare.core.folder.comparer import classify, classify_pair, compare_identities
from hashcompare.core.folder.fingerprint import (
    Fingerprinter,
    HashFingerprinter,
    MetadataFingerprinter,
)
from hashcompare.core.models import (
    Algorithm,
    EntryKind,
    ErrorIdentity,
    FileEntry,
    HashIdentity,
    LinkTargetIdentity,
    MetadataIdentity,
    Outcome,
    SymlinkMode,
)


def _entry(rel_path: str, size: int = 3, kind: EntryKind = EntryKind.REGULAR,
           target: str | None = None) -> FileEntry:
    parts = tuple(rel_path.split("/"))
    return FileEntry(
        path=Path("/nonexistent").joinpath(*parts),
        parts=parts,
        kind=kind,
        size=size,
        modified_ns=1_000,
        symlink_target=target,
    )


def _hash(**digests: str) -> HashIdentity:
    return HashIdentity.from_mapping(digests)


class CountingFingerprinter(Fingerprinter):
    """Metadata strategy that counts how often it is asked."""

    algorithm = Algorithm.METADATA

    def __init__(self, symlinks: SymlinkMode = SymlinkMode.IGNORE):
        super().__init__(symlinks)
        self.calls = 0

    @property
    def content_variant(self) -> type:
        return MetadataIdentity

    def _fingerprint_content(self, entry: FileEntry):
        self.calls += 1
        return MetadataIdentity(entry.size, entry.modified_ns)


class CompareIdentitiesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.both = HashFingerprinter(Algorithm.BOTH)

    def test_match_requires_every_algorithm_to_agree(self) -> None:
        left = _hash(sha256="aa", blake3="bb")

        self.assertEqual(
            compare_identities(left, _hash(sha256="aa", blake3="bb"), self.both),
            (Outcome.MATCH, ""),
        )
        self.assertEqual(
            compare_identities(left, _hash(sha256="aa", blake3="cc"), self.both),
            (Outcome.DIFFER, "content"),
        )

    def test_missing_digest_is_errored_not_match(self) -> None:
        outcome, reason = compare_identities(
            _hash(sha256="aa"), _hash(sha256="aa", blake3="bb"), self.both
        )

        self.assertEqual(outcome, Outcome.ERRORED)
        self.assertEqual(reason, "missing blake3 digest")

    def test_error_identity_wins(self) -> None:
        outcome, reason = compare_identities(
            _hash(sha256="aa", blake3="bb"), ErrorIdentity("Permission denied"), self.both
        )

        self.assertEqual(outcome, Outcome.ERRORED)
        self.assertEqual(reason, "Permission denied")

    def test_mixed_content_variants_are_a_type_error(self) -> None:
        with self.assertRaises(TypeError):
            compare_identities(MetadataIdentity(1, 1), _hash(sha256="aa"), self.both)
        with self.assertRaises(TypeError):
            compare_identities(_hash(sha256="aa"), MetadataIdentity(1, 1))

    def test_kind_mismatch_under_compare_links(self) -> None:
        strategy = HashFingerprinter(Algorithm.SHA256, SymlinkMode.COMPARE)

        self.assertEqual(
            compare_identities(_hash(sha256="aa"), LinkTargetIdentity("a.txt"), strategy),
            (Outcome.DIFFER, "kind"),
        )
        self.assertEqual(
            compare_identities(LinkTargetIdentity("a"), LinkTargetIdentity("b"), strategy),
            (Outcome.DIFFER, "link_target"),
        )

    def test_metadata_identities(self) -> None:
        strategy = MetadataFingerprinter()

        self.assertEqual(
            compare_identities(MetadataIdentity(2, 5), MetadataIdentity(2, 5), strategy),
            (Outcome.MATCH, ""),
        )
        self.assertEqual(
            compare_identities(MetadataIdentity(2, 5), MetadataIdentity(2, 6), strategy),
            (Outcome.DIFFER, "metadata"),
        )


class StrategyVariantTests(unittest.TestCase):
    def test_variants_are_fixed_when_the_strategy_is_built(self) -> None:
        strategy = HashFingerprinter(Algorithm.SHA256, SymlinkMode.COMPARE)

        self.assertIs(strategy.variants, strategy.variants)
        self.assertEqual(
            strategy.variants,
            frozenset({HashIdentity, ErrorIdentity, LinkTargetIdentity}),
        )
        self.assertEqual(MetadataFingerprinter().variants, frozenset({MetadataIdentity, ErrorIdentity}))

    def test_check_variants_rejects_foreign_variants(self) -> None:
        strategy = HashFingerprinter(Algorithm.BOTH)

        strategy.check_variants([HashIdentity, ErrorIdentity])
        with self.assertRaises(TypeError):
            strategy.check_variants([MetadataIdentity])
        with self.assertRaises(TypeError):
            strategy.check_variants([HashIdentity, LinkTargetIdentity])

    def test_classify_checks_variants_before_comparing(self) -> None:
        strategy = CountingFingerprinter()

        with self.assertRaises(TypeError):
            classify({"a": MetadataIdentity(1, 1)}, {"b": _hash(sha256="aa")}, strategy)


class ClassifyTests(unittest.TestCase):
    def test_every_path_gets_exactly_one_outcome(self) -> None:
        left = {
            "same.txt": _hash(sha256="1"),
            "changed.txt": _hash(sha256="2"),
            "gone.txt": _hash(sha256="3"),
            "broken.txt": ErrorIdentity("I/O error"),
        }
        right = {
            "same.txt": _hash(sha256="1"),
            "changed.txt": _hash(sha256="9"),
            "new.txt": _hash(sha256="4"),
            "broken.txt": _hash(sha256="5"),
        }

        outcomes = classify(left, right, HashFingerprinter(Algorithm.SHA256))

        by_path = {o.relative_path: o.outcome for o in outcomes}
        self.assertEqual(len(outcomes), len(set(left) | set(right)))
        self.assertEqual(by_path, {
            "broken.txt": Outcome.ERRORED,
            "changed.txt": Outcome.DIFFER,
            "gone.txt": Outcome.MISSING_IN_RIGHT,
            "new.txt": Outcome.EXTRA_IN_RIGHT,
            "same.txt": Outcome.MATCH,
        })

    def test_result_is_independent_of_input_order(self) -> None:
        items = [(f"dir{i % 3}/f{i}.txt", _hash(sha256=str(i))) for i in range(12)]
        left = dict(items)
        right = dict(reversed(items[3:]))

        first = classify(left, right)
        second = classify(dict(reversed(items)), dict(items[3:]))

        self.assertEqual(first, second)
        self.assertEqual(
            [o.relative_path for o in first],
            sorted(left, key=lambda p: tuple(p.split("/"))),
        )


class ClassifyPairTests(unittest.TestCase):
    def test_size_mismatch_short_circuits_fingerprinting(self) -> None:
        strategy = CountingFingerprinter()

        outcome = classify_pair(_entry("a.txt", 3), _entry("a.txt", 4), strategy)

        self.assertEqual(outcome.outcome, Outcome.DIFFER)
        self.assertEqual(outcome.reason, "size")
        self.assertEqual(strategy.calls, 0)

    def test_equal_sizes_fingerprint_both_sides(self) -> None:
        strategy = CountingFingerprinter()

        outcome = classify_pair(_entry("a.txt"), _entry("a.txt"), strategy)

        self.assertEqual(outcome.outcome, Outcome.MATCH)
        self.assertEqual(strategy.calls, 2)
        self.assertEqual((outcome.left_size, outcome.right_size), (3, 3))

    def test_one_sided_pairs_are_never_fingerprinted(self) -> None:
        strategy = CountingFingerprinter()

        extra = classify_pair(None, _entry("new.txt"), strategy)
        missing = classify_pair(_entry("old.txt"), None, strategy)

        self.assertEqual(extra.outcome, Outcome.EXTRA_IN_RIGHT)
        self.assertEqual(missing.outcome, Outcome.MISSING_IN_RIGHT)
        self.assertEqual(strategy.calls, 0)

    def test_empty_pair_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            classify_pair(None, None, CountingFingerprinter())

    def test_link_against_file_differs_by_kind(self) -> None:
        strategy = CountingFingerprinter(SymlinkMode.COMPARE)
        link = _entry("x", size=5, kind=EntryKind.SYMLINK, target="a.txt")

        outcome = classify_pair(link, _entry("x", size=5), strategy)

        self.assertEqual((outcome.outcome, outcome.reason), (Outcome.DIFFER, "kind"))
        self.assertEqual(strategy.calls, 0)

    def test_links_compare_targets_regardless_of_size(self) -> None:
        strategy = CountingFingerprinter(SymlinkMode.COMPARE)
        left = _entry("x", size=5, kind=EntryKind.SYMLINK, target="a.txt")
        right = _entry("x", size=9, kind=EntryKind.SYMLINK, target="a.txt")

        outcome = classify_pair(left, right, strategy)

        self.assertEqual(outcome.outcome, Outcome.MATCH)
        self.assertEqual(outcome.left_identity, LinkTargetIdentity("a.txt"))

    def test_recorded_error_from_identity_source_is_errored(self) -> None:
        strategy = CountingFingerprinter()

        outcome = classify_pair(
            _entry("a.txt", 3),
            None,
            strategy,
            left_source=lambda entry: ErrorIdentity("Permission denied"),
        )

        self.assertEqual(outcome.outcome, Outcome.ERRORED)
        self.assertEqual(outcome.reason, "Permission denied")

    def test_unreadable_file_is_errored(self) -> None:
        # Entries point at paths that do not exist
        outcome = classify_pair(_entry("a.txt"), _entry("a.txt"), HashFingerprinter(Algorithm.SHA256))

        self.assertEqual(outcome.outcome, Outcome.ERRORED)
        self.assertIsInstance(outcome.left_identity, ErrorIdentity)


if __name__ == "__main__":
    unittest.main()
