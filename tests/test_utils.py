"""Tests for output naming and logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from taxadelta.config.defaults import DEFAULT_CONFIG
from taxadelta.config.manager import ConfigManager
from taxadelta.utils.logging import setup_logging
from taxadelta.utils.naming import build_output_name


class TestBuildOutputName:

    def test_minimal(self):
        name = build_output_name("taxa_abundance", "subject", "time", "Family", 0.01, 0.01)
        assert name == ("taxa_abundance_subject_subject_time_time_feature_level_Family"
                        "_prev_filter_0.01_abund_filter_0.01.tsv")

    def test_all_parts(self):
        name = build_output_name("taxa_indiv_change", "subject", "visit", "Genus", 0, 0,
                                 change_base="1", group_var="arm", strata_var="site",
                                 file_ann="run2")
        assert name == ("taxa_indiv_change_subject_subject_time_visit_change_base_1"
                        "_feature_level_Genus_prev_filter_0_abund_filter_0"
                        "_group_arm_strata_site_run2.tsv")

    @pytest.mark.parametrize("value,text", [(0, "0"), (0.0, "0"), (1, "1"), (0.005, "0.005")])
    def test_thresholds(self, value, text):
        name = build_output_name("x", "s", "t", "L", value, 0, suffix="")
        assert name.endswith(f"_prev_filter_{text}_abund_filter_0")

    def test_distinct_parameters_distinct_names(self):
        first = build_output_name("x", "s", "t", "Family", 0.01, 0.01, change_base="1")
        second = build_output_name("x", "s", "t", "Family", 0.01, 0.01, change_base="2")
        assert first != second


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_file_handler(self, temp_dir):
        log_file = temp_dir / "logs" / "run.log"
        logger = setup_logging({"level": "DEBUG", "log_to_console": False}, log_file=log_file)

        assert logger.level == logging.DEBUG
        assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)

        logging.getLogger("taxadelta.test").info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

    def test_console_only(self):
        before = len(logging.getLogger().handlers)
        logger = setup_logging({"level": "warning", "log_to_file": False})
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == before + 1

    def test_rotation_settings_from_config(self, temp_dir):
        config = ConfigManager({"logging": {"log_to_console": False,
                                            "max_bytes": 2048, "backup_count": 2}})
        logger = setup_logging(config.get("logging"), log_file=temp_dir / "run.log")

        file_handler = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
        assert file_handler.maxBytes == 2048
        assert file_handler.backupCount == 2

    def test_defaults_fill_missing_keys(self, temp_dir):
        logger = setup_logging({}, log_file=temp_dir / "run.log")

        assert logger.level == logging.INFO
        file_handler = next(h for h in logger.handlers if isinstance(h, RotatingFileHandler))
        assert file_handler.maxBytes == DEFAULT_CONFIG["logging"]["max_bytes"]

    def test_repeated_setup_does_not_duplicate(self, temp_dir):
        before = len(logging.getLogger().handlers)
        setup_logging(log_file=temp_dir / "a.log")
        logger = setup_logging(log_file=temp_dir / "a.log")
        assert len(logger.handlers) == before + 2

    def test_foreign_handlers_kept(self, temp_dir):
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)

        logger = setup_logging({"log_to_console": False}, log_file=temp_dir / "a.log")

        assert foreign in logger.handlers
