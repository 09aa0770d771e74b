"""
Unit tests for the configuration classes.
"""

import logging

import pytest

from config import Config
from knowledge.models import RetrievalSettings


@pytest.fixture
def restore_root_level():
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


class TestConfig:
    """Test cases for Config."""

    def test_setup_applies_class_log_level(self, tmp_path, restore_root_level):
        class QuietConfig(Config):
            _setup_completed = False
            DATA_PATH = str(tmp_path / "data")
            LOG_LEVEL = "WARNING"

        QuietConfig.setup()

        assert logging.getLogger().level == logging.WARNING
        assert (tmp_path / "data").is_dir()

    def test_setup_runs_once(self, tmp_path, restore_root_level):
        class OnceConfig(Config):
            _setup_completed = False
            DATA_PATH = str(tmp_path / "data")
            LOG_LEVEL = "ERROR"

        OnceConfig.setup()
        OnceConfig.LOG_LEVEL = "DEBUG"
        OnceConfig.setup()

        assert logging.getLogger().level == logging.ERROR

    def test_retrieval_settings(self):
        settings = Config.retrieval_settings()
        assert isinstance(settings, RetrievalSettings)
        assert settings.similarity_threshold == Config.SIMILARITY_THRESHOLD
        assert settings.rerank_top_k == Config.RERANK_TOP_K
