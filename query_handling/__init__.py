"""
Query handling package: greetings and reply-language selection.

The decision engine lives in ``query_handling.engine``.
"""

from .greetings import GreetingDetector
from .language_handler import LanguageHandler

__all__ = [
    'GreetingDetector',
    'LanguageHandler'
]
