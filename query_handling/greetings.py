"""
Greeting detection: a bare "hello" is answered without retrieval.
"""

import re
from typing import List, Optional

from nlp_config_loader import config_loader

# Trailing punctuation ignored when deciding whether a message is only a greeting
_TRAILING_PUNCTUATION = "!.?~,！。？～，"


class GreetingDetector:
    """Matches whole messages against fixed greeting patterns."""

    def __init__(self, patterns: Optional[List[str]] = None):
        if patterns is None:
            patterns = config_loader.get_greeting_patterns()
        self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    @staticmethod
    def normalize(message: str) -> str:
        return (message or "").strip().rstrip(_TRAILING_PUNCTUATION).strip()

    def is_greeting(self, message: str) -> bool:
        text = self.normalize(message)
        if not text:
            return False
        return any(pattern.match(text) for pattern in self.patterns)
