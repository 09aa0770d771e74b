"""
Language detection and reply-language selection for the Inap assistant.
"""

import re
from typing import Dict, List, Optional, Tuple
import logging

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from nlp_config_loader import config_loader

# Set seed for consistent results
DetectorFactory.seed = 0

logger = logging.getLogger("Inap")

_CJK = re.compile(r'[\u4e00-\u9fff]')
_WORD = re.compile(r"[a-z]+(?:-[a-z]+)*")

DEFAULT_FALLBACK_TEXT = "Sorry, I couldn't understand your question."


class LanguageHandler:
    """
    Detects the customer's language and picks the language to reply in.

    Detection is wordlist-based for the languages the homestays serve
    (Chinese by script; Malay, Hindi and Tamil by common romanised words).
    Everything else is treated as English; ``langdetect`` only refines how
    confident we are about that.
    """

    def __init__(self, detection_enabled: bool = True, auto_response: bool = True,
                 wordlists: Optional[Dict[str, List[str]]] = None,
                 rules: Optional[List[Dict]] = None,
                 templates: Optional[Dict[str, Dict[str, str]]] = None,
                 instructions: Optional[Dict[str, str]] = None):
        self.detection_enabled = detection_enabled
        self.auto_response = auto_response
        self.wordlists = wordlists if wordlists is not None else config_loader.get_language_wordlists()
        self.rules = rules if rules is not None else config_loader.get_language_rules()
        self.templates = templates if templates is not None else config_loader.get_response_templates()
        self.instructions = instructions if instructions is not None else config_loader.get_language_instructions()

        self.stats = {
            'detections': 0,
            'langdetect_refinements': 0,
        }

    @classmethod
    def from_config(cls, config) -> "LanguageHandler":
        return cls(
            detection_enabled=config.LANGUAGE_DETECTION_ENABLED,
            auto_response=config.AUTO_LANGUAGE_RESPONSE,
        )

    def _wordlist_hits(self, text: str, language: str) -> int:
        words = set(_WORD.findall(text))
        return sum(1 for word in self.wordlists.get(language, []) if word in words)

    def detect_language(self, text: str) -> str:
        """
        Detect the message language.

        Returns:
            One of ``zh``, ``ms``, ``hi``, ``ta`` or ``en`` (the default)
        """
        if not text or not isinstance(text, str):
            return 'en'

        self.stats['detections'] += 1
        clean = text.strip().lower()

        if _CJK.search(clean):
            return 'zh'

        # Two hits needed: a single Malay-looking word is often a loanword
        for language in ('ms', 'hi', 'ta'):
            if self._wordlist_hits(clean, language) >= 2:
                return language

        return 'en'

    def detect_language_with_confidence(self, text: str) -> Tuple[str, float]:
        """
        Detect the language together with a rough confidence.

        Unlike ``detect_language`` a single wordlist hit is enough here; the
        confidence grows with the share of the wordlist that was hit.

        Returns:
            Tuple of (language_code, confidence)
        """
        if not text or not isinstance(text, str):
            return 'en', 0.1

        clean = text.strip().lower()

        chinese_chars = len(_CJK.findall(clean))
        if chinese_chars:
            return 'zh', min(0.9, 0.5 + (chinese_chars / len(clean)) * 0.4)

        for language in ('ms', 'hi', 'ta'):
            wordlist = self.wordlists.get(language, [])
            hits = self._wordlist_hits(clean, language)
            if hits >= 1:
                return language, min(0.8, 0.4 + (hits / len(wordlist)) * 0.4)

        return 'en', self._english_confidence(clean)

    def _english_confidence(self, text: str) -> float:
        # Too little text for a statistical detector to say anything useful
        if len(text.split()) < 4:
            return 0.6

        try:
            scores = detect_langs(text)
        except LangDetectException as e:
            logger.debug(f"langdetect could not score text: {e}")
            return 0.6

        self.stats['langdetect_refinements'] += 1
        english = next((s.prob for s in scores if s.lang == 'en'), 0.0)
        # Keep within the band the wordlist detectors use
        return round(min(0.9, max(0.3, 0.3 + english * 0.6)), 4)

    def get_response_language(self, text: str) -> str:
        """Language the reply should be written in, after applying the language rules."""
        if not self.detection_enabled or not self.auto_response:
            return 'en'

        detected = self.detect_language(text)
        for rule in self.rules:
            if rule.get('enabled', True) and detected in rule.get('trigger_languages', []):
                return rule.get('response_language', 'en')

        return 'en'

    def get_template(self, language: str, kind: str = 'fallback') -> str:
        """
        Canned reply text (``greeting``, ``fallback`` or ``busy``) for a language.

        Unknown languages use the English templates.
        """
        templates = self.templates.get(language) or self.templates.get('en') or {}
        return templates.get(kind) or templates.get('fallback') or DEFAULT_FALLBACK_TEXT

    def language_instruction(self, language: str) -> str:
        """Instruction appended to the system prompt telling the model which language to use."""
        return self.instructions.get(language) or self.instructions.get('en') or "Please respond in English."
