"""
GeoCanvas - Internationalization (i18n)
Translation tables as JSON files next to this module.

Usage:
    from i18n import tr, set_language, get_language

    set_language('vi')
    title = tr("Circle radius")  # -> "Bán kính đường tròn"
"""

import json
import os
from typing import Dict
from loguru import logger

_current_language = 'en'
_translations: Dict[str, Dict[str, str]] = {}
_fallback_language = 'en'

_i18n_dir = os.path.dirname(os.path.abspath(__file__))


def load_language(lang: str) -> bool:
    """Loads a language file"""
    filepath = os.path.join(_i18n_dir, f'{lang}.json')

    if os.path.exists(filepath):
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                _translations[lang] = json.load(f)
            return True
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"[i18n] Error loading language file {filepath}: {e}")
            return False
    return False


def set_language(lang: str) -> bool:
    """Sets the current language"""
    global _current_language

    if lang != _fallback_language and lang not in _translations:
        if not load_language(lang):
            logger.info(f"[i18n] Language '{lang}' not found, using fallback '{_fallback_language}'")
            return False

    _current_language = lang
    return True


def get_language() -> str:
    """Returns the current language"""
    return _current_language


def get_available_languages() -> list:
    """Returns all available languages"""
    languages = {_fallback_language}
    for filename in os.listdir(_i18n_dir):
        if filename.endswith('.json'):
            languages.add(filename[:-5])
    return sorted(languages)


def tr(text: str, context: str = None) -> str:
    """
    Translates a text.

    Args:
        text: English source text, used as the key
        context: Optional context for ambiguous texts

    Returns:
        Translated text or the original if no translation exists
    """
    if _current_language == 'en':
        return text

    trans = _translations.get(_current_language)
    if trans:
        if context:
            key = f"{context}::{text}"
            if key in trans:
                return trans[key]
        if text in trans:
            return trans[text]

    return text


_ = tr

load_language('vi')
