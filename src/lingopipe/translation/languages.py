"""Locale metadata: display names and plural-form counts.

Used by providers and the CLI for prompts and summaries; the pipeline itself
never looks at it.
"""

from __future__ import annotations

from dataclasses import dataclass

_NAMES: dict[str, str] = {
    "ar": "Arabic",
    "bn": "Bengali",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fa": "Persian",
    "fi": "Finnish",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "hu": "Hungarian",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "ms": "Malay",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "pt_br": "Portuguese (Brazil)",
    "ro": "Romanian",
    "ru": "Russian",
    "sv": "Swedish",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "zh_cn": "Chinese (Simplified)",
    "zh_tw": "Chinese (Traditional)",
}

# Languages with a single plural form (no singular/plural distinction)
_ONE_FORM = {"id", "ja", "ko", "ms", "th", "tr", "vi", "zh"}
# Slavic-style one/few/many
_THREE_FORMS = {"cs", "pl", "ro", "ru", "uk"}
_SIX_FORMS = {"ar"}

DEFAULT_PLURAL_FORMS = 2


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    plural_forms: int = DEFAULT_PLURAL_FORMS


def normalize_locale(locale: str) -> str:
    """``pt-BR`` / ``PT_br`` → ``pt_br``."""
    return locale.strip().replace("-", "_").lower()


def language_name(locale: str) -> str | None:
    code = normalize_locale(locale)
    return _NAMES.get(code) or _NAMES.get(code.split("_")[0])


def plural_forms(locale: str) -> int:
    base = normalize_locale(locale).split("_")[0]
    if base in _ONE_FORM:
        return 1
    if base in _THREE_FORMS:
        return 3
    if base in _SIX_FORMS:
        return 6
    return DEFAULT_PLURAL_FORMS


def get_language(locale: str) -> Language:
    """Resolve a locale code (or a display name) to its metadata.

    Raises:
        ValueError: if the locale is unknown.
    """
    code = normalize_locale(locale)
    name = language_name(code)
    if name is None:
        by_name = {v.lower(): k for k, v in _NAMES.items()}
        code = by_name.get(locale.strip().lower(), "")
        name = _NAMES.get(code)
    if name is None:
        raise ValueError(f"Unknown locale: {locale!r}")
    return Language(code=code, name=name, plural_forms=plural_forms(code))
