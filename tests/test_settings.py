from __future__ import annotations

import io
import logging
import tempfile
import unittest
from pathlib import Path

from hashcompare.core.errors import ConfigError
from hashcompare.core.folder.scheduler import CompareEngine
from hashcompare.core.models import Algorithm, RunMode, SymlinkMode
from hashcompare.services.logging_setup import LogFormatter, setup_logging, setup_run_logging
from hashcompare.services.settings import RunConfig, SettingsManager, parse_enum


class RunConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = RunConfig()

        self.assertEqual(config.mode, RunMode.BATCH)
        self.assertEqual(config.algorithm, Algorithm.BLAKE3)
        self.assertTrue(config.sync_dry_run)
        self.assertFalse(config.sync_delete_extraneous)
        self.assertGreaterEqual(config.effective_threads, 1)

    def test_from_mapping_parses_loose_values(self) -> None:
        config = RunConfig.from_mapping({
            "mode": "realtime",
            "algorithm": "hash-b",
            "thread_count": "auto",
            "recursion_depth": "3",
            "symlinks": "COMPARE",
            "extension_filter": ".TXT, md",
            "ignore_patterns": ["*.tmp", "!keep.tmp"],
        })

        self.assertEqual(config.mode, RunMode.REALTIME)
        self.assertEqual(config.algorithm, Algorithm.SHA256)
        self.assertIsNone(config.thread_count)
        self.assertEqual(config.recursion_depth, 3)
        self.assertEqual(config.symlinks, SymlinkMode.COMPARE)
        self.assertEqual(config.extension_filter, frozenset({"txt", "md"}))
        self.assertEqual(config.scan_options().ignore_patterns, ("*.tmp", "!keep.tmp"))

    def test_algorithm_aliases(self) -> None:
        self.assertEqual(parse_enum(Algorithm, "hash-a", "algorithm"), Algorithm.BLAKE3)
        self.assertEqual(parse_enum(Algorithm, "Both", "algorithm"), Algorithm.BOTH)

    def test_invalid_values_raise_config_error(self) -> None:
        invalid = [
            {"algorithm": "md5"},
            {"mode": "later"},
            {"thread_count": "many"},
            {"thread_count": 0},
            {"recursion_depth": -1},
            {"colour": "blue"},
        ]
        for data in invalid:
            with self.assertRaises(ConfigError, msg=repr(data)):
                RunConfig.from_mapping(data)

    def test_conflicting_options(self) -> None:
        with self.assertRaises(ConfigError):
            RunConfig.from_mapping({"no_recursive": True, "recursion_depth": 4})
        with self.assertRaises(ConfigError):
            RunConfig.from_mapping({"no_delete": True, "sync_delete_extraneous": True})

        self.assertEqual(RunConfig.from_mapping({"no_recursive": True}).recursion_depth, 1)
        self.assertFalse(RunConfig.from_mapping({"no_delete": True}).sync_delete_extraneous)

    def test_to_dict_round_trip(self) -> None:
        config = RunConfig(
            mode=RunMode.REALTIME,
            algorithm=Algorithm.BOTH,
            recursion_depth=2,
            extension_filter=frozenset({"py", "txt"}),
            ignore_patterns=["build/"],
            thread_count=4,
            sync_delete_extraneous=True,
        )

        self.assertEqual(RunConfig.from_mapping(config.to_dict()), config)


class SettingsManagerTests(unittest.TestCase):
    def test_missing_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            manager = SettingsManager(Path(tmp) / "settings.json")

            self.assertEqual(manager.settings, RunConfig())

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "settings.json"
            config = RunConfig(algorithm=Algorithm.SHA256, include_hidden=True)

            self.assertTrue(SettingsManager(path).save(config))

            self.assertEqual(SettingsManager(path).load(), config)

    def test_corrupt_file_falls_back_to_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("{broken", encoding="utf-8")

            self.assertEqual(SettingsManager(path).load(), RunConfig())

    def test_reset_writes_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            manager = SettingsManager(path)
            manager.save(RunConfig(verbose=True))

            self.assertEqual(manager.reset(), RunConfig())
            self.assertEqual(SettingsManager(path).load(), RunConfig())


class LoggingSetupTests(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._handlers = list(root.handlers)
        self._level = root.level

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._handlers:
                handler.close()
        root.handlers[:] = self._handlers
        root.setLevel(self._level)

    def test_console_and_file_handlers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "logs" / "run.log"

            logger = setup_logging("debug", log_file=log_file, use_colors=False)
            logger.debug("FolderScanner - hello")
            for handler in logger.handlers:
                handler.flush()

            self.assertEqual(logger.level, logging.DEBUG)
            self.assertEqual(len(logger.handlers), 2)
            self.assertIn("FolderScanner - hello", log_file.read_text(encoding="utf-8"))

            for handler in logger.handlers:
                handler.close()

    def test_run_logging_level_follows_verbose(self) -> None:
        self.assertEqual(setup_run_logging(RunConfig(verbose=True)).level, logging.DEBUG)
        self.assertEqual(setup_run_logging(RunConfig()).level, logging.INFO)

    def test_no_colors_when_stream_is_not_a_terminal(self) -> None:
        formatter = LogFormatter(use_colors=True, stream=io.StringIO())
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "plain", None, None)

        self.assertFalse(formatter.use_colors)
        self.assertNotIn("\033[", formatter.format(record))

    def test_verbose_run_logs_each_path_at_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            for side in ("left", "right"):
                (Path(tmp) / side).mkdir()
                (Path(tmp) / side / "a.txt").write_text("a", encoding="utf-8")

            with self.assertLogs(level="DEBUG") as captured:
                CompareEngine(RunConfig(verbose=True)).compare(Path(tmp) / "left", Path(tmp) / "right")

            decisions = [line for line in captured.output if line.startswith("DEBUG:")]
            self.assertTrue(any("CompareEngine - [" in line and "a.txt" in line for line in decisions))


if __name__ == "__main__":
    unittest.main()
