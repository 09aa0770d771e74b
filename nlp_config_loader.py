"""
Loader for the externalised NLP vocabularies (synonyms, greetings, language rules).
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Tuple
from functools import lru_cache

logger = logging.getLogger("Inap")


class ConfigLoader:
    """Reads ``nlp_config.yaml`` once and serves typed views of it."""

    def __init__(self, config_path: str = None):
        if config_path is None:
            config_path = Path(__file__).parent / "nlp_config.yaml"
        self.config_path = Path(config_path)

    @lru_cache(maxsize=1)
    def load_config(self) -> Dict:
        """Load configuration with caching for performance."""
        try:
            if not self.config_path.exists():
                logger.error(f"NLP config file not found: {self.config_path}")
                return self._get_minimal_fallback()

            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}

            logger.debug(f"Loaded NLP configuration from {self.config_path}")
            return config

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load NLP configuration: {e}")
            return self._get_minimal_fallback()

    def _section(self, name: str):
        config = self.load_config()
        value = config.get(name)
        if value is None:
            return self._get_minimal_fallback()[name]
        return value

    def get_synonym_groups(self) -> Tuple[Tuple[str, ...], ...]:
        """Synonym groups, each lowercased; order is preserved."""
        groups = []
        for group in self._section('synonym_groups'):
            terms = tuple(str(term).lower() for term in group if str(term).strip())
            if terms:
                groups.append(terms)
        return tuple(groups)

    def get_greeting_patterns(self) -> List[str]:
        return [str(p) for p in self._section('greeting_patterns')]

    def get_general_question_keywords(self) -> List[str]:
        return [str(k).lower() for k in self._section('general_question_keywords')]

    def get_language_wordlists(self) -> Dict[str, List[str]]:
        return {lang: [str(w).lower() for w in words]
                for lang, words in self._section('language_wordlists').items()}

    def get_language_rules(self) -> List[Dict]:
        return list(self._section('language_rules'))

    def get_response_templates(self) -> Dict[str, Dict[str, str]]:
        return dict(self._section('response_templates'))

    def get_language_instructions(self) -> Dict[str, str]:
        return dict(self._section('language_instructions'))

    def _get_minimal_fallback(self) -> Dict:
        """Minimal fallback configuration."""
        return {
            'synonym_groups': [
                ["check-in", "入住", "办理入住"],
                ["check-out", "退房", "离店"],
            ],
            'greeting_patterns': [
                r'^(hi|hello|hey|good morning|good afternoon|good evening)$',
                r'^(你好|您好|嗨)$',
            ],
            'general_question_keywords': ['check-in', 'check-out', 'amenities', 'wifi', 'parking'],
            'language_wordlists': {},
            'language_rules': [
                {'id': 'chinese_rule', 'trigger_languages': ['zh'], 'response_language': 'zh', 'enabled': True},
            ],
            'response_templates': {
                'en': {
                    'greeting': "Hello! How can I help you today?",
                    'fallback': "Sorry, I couldn't understand your question.",
                    'busy': "[We are experiencing high volume]",
                },
            },
            'language_instructions': {
                'en': "Please respond in English.",
            },
        }

    def reload_config(self):
        """Force reload configuration (for testing/updates)."""
        self.load_config.cache_clear()
        logger.info("NLP configuration reloaded")


# Global config loader instance
config_loader = ConfigLoader()
