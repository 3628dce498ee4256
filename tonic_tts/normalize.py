from __future__ import annotations

import re
import unicodedata
from enum import Enum
from typing import Dict, List, Tuple

from tonic_tts.errors import InvalidLanguage

# ---------- Languages ----------


class Language(str, Enum):
    """Languages the multilingual models were trained on."""

    EN = "en"
    KO = "ko"
    ES = "es"
    PT = "pt"
    FR = "fr"


AVAILABLE_LANGS: Tuple[str, ...] = tuple(lang.value for lang in Language)

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "ko": "Korean",
    "es": "Spanish",
    "pt": "Portuguese",
    "fr": "French",
}


def is_valid_lang(language: str) -> bool:
    return language in AVAILABLE_LANGS


# ---------- Character tables ----------

_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F700-\U0001F77F"
    "\U0001F780-\U0001F7FF"
    "\U0001F800-\U0001F8FF"
    "\U0001F900-\U0001F9FF"
    "\U0001FA00-\U0001FA6F"
    "\U0001FA70-\U0001FAFF"
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF"  # dingbats
    "\U0001F1E6-\U0001F1FF"  # regional indicators (flags)
    "]+"
)

_CHAR_REPLACEMENTS: List[Tuple[str, str]] = [
    ("–", "-"),  # en dash
    ("‑", "-"),  # non-breaking hyphen
    ("—", "-"),  # em dash
    ("_", " "),
    ("“", '"'),
    ("”", '"'),
    ("‘", "'"),
    ("’", "'"),
    ("´", "'"),  # acute accent
    ("`", "'"),
    ("[", " "),
    ("]", " "),
    ("|", " "),
    ("/", " "),
    ("#", " "),
    ("→", " "),  # right arrow
    ("←", " "),  # left arrow
]

_REMOVED_SYMBOLS = ("♥", "☆", "♡", "©", "\\")

_EXPRESSIONS: List[Tuple[str, str]] = [
    ("@", " at "),
    ("e.g.,", "for example, "),
    ("i.e.,", "that is, "),
]

_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.!?;:'])")
_WHITESPACE_RE = re.compile(r"\s+")
_TERMINAL_RE = re.compile(
    "[.!?;:,'\"“”‘’)\\]}…。」』】〉》›»]$"
)


def _collapse_repeats(text: str, char: str) -> str:
    doubled = char * 2
    while doubled in text:
        text = text.replace(doubled, char)
    return text


def clean_text(text: str) -> str:
    """Apply every textual transform of :func:`normalize` without the language tag.

    The result is a fixed point: ``clean_text(clean_text(t)) == clean_text(t)``.
    """

    text = unicodedata.normalize("NFKD", text)
    text = _EMOJI_RE.sub("", text)

    for source, target in _CHAR_REPLACEMENTS:
        text = text.replace(source, target)
    for symbol in _REMOVED_SYMBOLS:
        text = text.replace(symbol, "")
    for source, target in _EXPRESSIONS:
        text = text.replace(source, target)

    text = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", text)
    for char in ('"', "'", "`"):
        text = _collapse_repeats(text, char)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    if text and not _TERMINAL_RE.search(text):
        text += "."
    return text


def normalize(text: str, language: str) -> str:
    """Canonicalize ``text`` and wrap it as ``<language>text</language>``.

    Raises:
        InvalidLanguage: If ``language`` is not one of :data:`AVAILABLE_LANGS`.
    """

    cleaned = clean_text(text)
    if not is_valid_lang(language):
        raise InvalidLanguage(language, AVAILABLE_LANGS)
    return f"<{language}>{cleaned}</{language}>"
