"""
Configuration settings for the Inap assistant with environment-specific support.

This module provides configuration management including:
- Environment-specific configuration loading
- Retrieval and reranking tunables
- Provider (embedding / chat model) settings
- Logging and error handling setup
"""

import os
import logging
from dotenv import load_dotenv
from logging.handlers import RotatingFileHandler

# Determine environment
ENV = os.environ.get("INAP_ENV", "local").lower()

# Load environment-specific .env file
if ENV == "production":
    env_file = ".env.production"
elif ENV == "local":
    env_file = ".env.local"
else:
    env_file = ".env"

if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    load_dotenv()

# Configure logging with rotation
log_level_name = os.environ.get("INAP_LOG_LEVEL", "INFO")
log_level = getattr(logging, log_level_name.upper(), logging.INFO)

LOG_DIR = os.environ.get("INAP_LOG_DIR", "logs")
os.makedirs(LOG_DIR, exist_ok=True)

LOG_MAX_BYTES = int(os.environ.get("INAP_LOG_MAX_BYTES", "104857600"))  # 100MB default
LOG_BACKUP_COUNT = int(os.environ.get("INAP_LOG_BACKUP_COUNT", "5"))
LOG_USE_JSON = os.environ.get("INAP_LOG_USE_JSON", "False").lower() in ("true", "1", "t")

rotating_handler = RotatingFileHandler(
    os.path.join(LOG_DIR, "inap.log"),
    maxBytes=LOG_MAX_BYTES,
    backupCount=LOG_BACKUP_COUNT,
    encoding='utf-8'
)

# Structured output for log shippers in production
if LOG_USE_JSON:
    import json
    import datetime

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            log_entry = {
                'timestamp': datetime.datetime.fromtimestamp(record.created).isoformat(),
                'level': record.levelname,
                'logger': record.name,
                'message': record.getMessage(),
                'module': record.module,
                'function': record.funcName,
                'line': record.lineno
            }
            if record.exc_info:
                log_entry['exception'] = self.formatException(record.exc_info)
            return json.dumps(log_entry, ensure_ascii=False)

    rotating_handler.setFormatter(JSONFormatter())
    console_formatter = JSONFormatter()
else:
    standard_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    rotating_handler.setFormatter(standard_formatter)
    console_formatter = standard_formatter

console_handler = logging.StreamHandler()
console_handler.setFormatter(console_formatter)

logging.basicConfig(
    level=log_level,
    handlers=[
        rotating_handler,
        console_handler
    ]
)
logger = logging.getLogger("Inap")


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ("true", "1", "t")


class Config:
    """
    Base configuration settings for the Inap assistant.

    Every tunable number used by the retrieval pipeline is exposed here so it
    can be overridden per environment; ``retrieval_settings()`` packs them into
    the immutable struct the pipeline consumes.
    """

    _setup_completed = False

    # Environment
    ENV = ENV

    # Paths
    SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
    DATA_PATH = os.environ.get("INAP_DATA_PATH", os.path.join(SCRIPT_DIR, "data"))
    FAQ_FILE = os.environ.get("INAP_FAQ_FILE", "faqs.json")
    HOMESTAY_FILE = os.environ.get("INAP_HOMESTAY_FILE", "homestays.json")
    GENERAL_KNOWLEDGE_FILE = os.environ.get("INAP_GENERAL_KNOWLEDGE_FILE", "general_knowledge.txt")
    SNAPSHOT_CACHE_TTL = int(os.environ.get("INAP_SNAPSHOT_CACHE_TTL", "60"))

    # Provider settings
    OPENAI_API_KEY = os.environ.get("INAP_OPENAI_API_KEY", os.environ.get("OPENAI_API_KEY", ""))
    OPENAI_BASE_URL = os.environ.get("INAP_OPENAI_BASE_URL", "https://api.openai.com/v1")
    EMBEDDING_MODEL_NAME = os.environ.get("INAP_EMBEDDING_MODEL", "text-embedding-3-small")
    CHAT_MODEL_NAME = os.environ.get("INAP_CHAT_MODEL", "gpt-3.5-turbo")
    MAX_TOKENS = int(os.environ.get("INAP_MAX_TOKENS", "512"))
    TEMPERATURE = float(os.environ.get("INAP_TEMPERATURE", "0.2"))
    PROVIDER_TIMEOUT = float(os.environ.get("INAP_PROVIDER_TIMEOUT", "8.0"))
    USE_EMBEDDINGS = _env_flag("INAP_USE_EMBEDDINGS", "True")
    EMBEDDING_PROVIDER = os.environ.get("INAP_EMBEDDING_PROVIDER", "openai").lower()  # openai | hashing
    HASHING_EMBEDDING_DIM = int(os.environ.get("INAP_HASHING_EMBEDDING_DIM", "256"))

    # Retrieval settings
    SIMILARITY_THRESHOLD = float(os.environ.get("INAP_SIMILARITY_THRESHOLD", "0.3"))
    MAX_CANDIDATES = int(os.environ.get("INAP_MAX_CANDIDATES", "10"))
    RERANK_TOP_K = int(os.environ.get("INAP_RERANK_TOP_K", "3"))

    # Reranking weights
    SIMILARITY_WEIGHT = float(os.environ.get("INAP_SIMILARITY_WEIGHT", "0.7"))
    HOMESTAY_WEIGHT = float(os.environ.get("INAP_HOMESTAY_WEIGHT", "0.2"))
    SYNONYM_WEIGHT = float(os.environ.get("INAP_SYNONYM_WEIGHT", "0.1"))

    # Reply behaviour
    BUSY_MODE = _env_flag("INAP_BUSY_MODE", "False")
    LANGUAGE_DETECTION_ENABLED = _env_flag("INAP_LANGUAGE_DETECTION", "True")
    AUTO_LANGUAGE_RESPONSE = _env_flag("INAP_AUTO_LANGUAGE_RESPONSE", "True")

    # API server
    API_HOST = os.environ.get("INAP_API_HOST", "0.0.0.0")
    API_PORT = int(os.environ.get("INAP_API_PORT", "5000"))

    # Logging settings
    LOG_LEVEL = log_level_name
    LOG_MAX_BYTES = LOG_MAX_BYTES
    LOG_BACKUP_COUNT = LOG_BACKUP_COUNT
    LOG_USE_JSON = LOG_USE_JSON

    @classmethod
    def retrieval_settings(cls):
        """Build the immutable retrieval settings from the active configuration."""
        from knowledge.models import RetrievalSettings

        return RetrievalSettings(
            similarity_threshold=cls.SIMILARITY_THRESHOLD,
            max_candidates=cls.MAX_CANDIDATES,
            rerank_top_k=cls.RERANK_TOP_K,
            similarity_weight=cls.SIMILARITY_WEIGHT,
            homestay_weight=cls.HOMESTAY_WEIGHT,
            synonym_weight=cls.SYNONYM_WEIGHT,
            provider_timeout=cls.PROVIDER_TIMEOUT,
        )

    @classmethod
    def has_api_key(cls):
        return bool(cls.OPENAI_API_KEY and cls.OPENAI_API_KEY.strip())

    @classmethod
    def setup(cls):
        """
        Set up the configuration and ensure directories exist.

        Performs one-time initialization including directory creation and
        configuration logging.
        """
        if cls._setup_completed:
            logger.debug("Configuration setup already completed, skipping duplicate setup")
            return

        # Environment classes may override the level chosen at import time
        logging.getLogger().setLevel(getattr(logging, str(cls.LOG_LEVEL).upper(), logging.INFO))
        os.makedirs(cls.DATA_PATH, exist_ok=True)

        logger.info(f"Running in {cls.ENV} environment")
        logger.info(f"Data directory: {cls.DATA_PATH}")
        log_size_mb = cls.LOG_MAX_BYTES // 1048576
        logger.info(f"Log rotation: {log_size_mb}MB max size, {cls.LOG_BACKUP_COUNT} backups")
        if cls.LOG_USE_JSON:
            logger.info("JSON logging enabled for structured log analysis")
        logger.info(f"Embedding model: {cls.EMBEDDING_MODEL_NAME} (enabled: {cls.USE_EMBEDDINGS})")
        logger.info(f"Chat model: {cls.CHAT_MODEL_NAME}")
        logger.info(f"Similarity threshold: {cls.SIMILARITY_THRESHOLD}, max candidates: {cls.MAX_CANDIDATES}")
        logger.info(
            f"Rerank weights: similarity={cls.SIMILARITY_WEIGHT}, "
            f"homestay={cls.HOMESTAY_WEIGHT}, synonym={cls.SYNONYM_WEIGHT}"
        )
        logger.info(f"Provider timeout: {cls.PROVIDER_TIMEOUT}s")

        if not cls.has_api_key():
            logger.warning("No OpenAI API key configured - replies will be withheld until one is set")

        if cls.BUSY_MODE:
            logger.info("Busy mode is ON - replies will carry the high-volume notice")

        cls._setup_completed = True
        logger.debug("Configuration setup completed successfully")


# Load environment-specific configuration
if ENV == "production":
    try:
        from config_production import ProductionConfig
        ConfigClass = ProductionConfig
        logger.info("Loaded production configuration")
    except ImportError:
        ConfigClass = Config
        logger.warning("Production configuration not found, using base configuration")
elif ENV == "local":
    try:
        from config_local import LocalConfig
        ConfigClass = LocalConfig
        logger.debug("Loaded local development configuration")
    except ImportError:
        ConfigClass = Config
        logger.warning("Local configuration not found, using base configuration")
else:
    ConfigClass = Config
    logger.info("Using base configuration")

# Export the appropriate configuration class
config = ConfigClass
