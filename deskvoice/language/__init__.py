"""
语言模块

短语表存储和意图解析
"""

from .resolver import IntentResolver
from .store import LanguageResourceStore, PhraseRule, PhraseTable, normalize_text

__all__ = [
    "IntentResolver",
    "LanguageResourceStore",
    "PhraseRule",
    "PhraseTable",
    "normalize_text",
]
