"""
Local development configuration for the Inap assistant.
"""

import os
from config import Config, logger

class LocalConfig(Config):
    """Configuration tuned for local development and the chat tester."""

    # Local data directory next to the checkout
    DATA_PATH = os.environ.get("INAP_DATA_PATH", os.path.join(Config.SCRIPT_DIR, "data"))

    # Short snapshot cache so edits to the FAQ files show up quickly
    SNAPSHOT_CACHE_TTL = int(os.environ.get("INAP_SNAPSHOT_CACHE_TTL", "5"))

    # Cheaper models while iterating
    CHAT_MODEL_NAME = os.environ.get("INAP_CHAT_MODEL", "gpt-3.5-turbo")
    EMBEDDING_MODEL_NAME = os.environ.get("INAP_EMBEDDING_MODEL", "text-embedding-3-small")

    # More verbose logging for development
    LOG_LEVEL = os.environ.get("INAP_LOG_LEVEL", "DEBUG")

    @classmethod
    def setup(cls):
        """Set up local development configuration."""
        super().setup()

        logger.info("Running in LOCAL development mode")
        logger.info(f"Snapshot cache TTL: {cls.SNAPSHOT_CACHE_TTL}s (short for development)")
