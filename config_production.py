"""
Production configuration for the Inap assistant.
"""

import os
from config import Config, logger

class ProductionConfig(Config):
    """Configuration for the deployed webhook / chat-tester service."""

    SNAPSHOT_CACHE_TTL = int(os.environ.get("INAP_SNAPSHOT_CACHE_TTL", "300"))

    # Tighter timeout so an unresponsive provider never stalls the reply path
    PROVIDER_TIMEOUT = float(os.environ.get("INAP_PROVIDER_TIMEOUT", "6.0"))

    # Production-level logging
    LOG_LEVEL = os.environ.get("INAP_LOG_LEVEL", "WARNING")

    @classmethod
    def setup(cls):
        """Set up production configuration."""
        super().setup()

        logger.info("Running in PRODUCTION mode")

        # Ensure absolute paths for production
        if not os.path.isabs(cls.DATA_PATH):
            logger.warning(f"Converting relative data path to absolute: {cls.DATA_PATH}")
            cls.DATA_PATH = os.path.abspath(cls.DATA_PATH)

        if not cls.has_api_key():
            logger.error("INAP_OPENAI_API_KEY is not set - every non-greeting message will go unanswered")
