"""Structural checks on translated content.

Each check compares a source text with its translation and returns issue
names. Issues become context warnings; in strict mode they become errors and
the run fails with TranslationValidationError.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable

from lingopipe.config import ValidationConfig
from lingopipe.core import stages as st
from lingopipe.core.context import RunContext
from lingopipe.core.pipeline import HandlerResult, Next
from lingopipe.core.plugin import MiddlewarePlugin
from lingopipe.errors import TranslationValidationError

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r"<[^>]+>")
_HTML_TAG_NAME = re.compile(r"</?\s*([a-zA-Z][\w-]*)")
_COLON_VAR = re.compile(r"(?<![\w:]):\w+")
_MUSTACHE_VAR = re.compile(r"\{\{[^}]+\}\}")
_DOLLAR_VAR = re.compile(r"\$\w+")
_PRINTF = re.compile(r"%[sdifFeEgGxXobBcpn]")
_NAMED = re.compile(r"[{\[][\w\s]+[}\]]")
_URL = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)
_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")

# Typical target/source length factors by target language
_LENGTH_ADJUSTMENTS = {
    "de": 1.3,
    "fr": 1.2,
    "es": 1.1,
    "ru": 1.2,
    "zh": 0.7,
    "ja": 0.8,
    "ko": 0.9,
}

Check = Callable[[str, str, str], list[str]]


def _missing(pattern: re.Pattern[str], original: str, translation: str) -> list[str]:
    found = set(pattern.findall(translation))
    return [m for m in pattern.findall(original) if m not in found]


def check_html(original: str, translation: str, locale: str) -> list[str]:
    src_tags = _HTML_TAG.findall(original)
    dst_tags = _HTML_TAG.findall(translation)
    issues = []
    if len(src_tags) != len(dst_tags):
        issues.append("html_tag_count")
    src_names = Counter(m.lower() for t in src_tags for m in _HTML_TAG_NAME.findall(t))
    dst_names = Counter(m.lower() for t in dst_tags for m in _HTML_TAG_NAME.findall(t))
    if src_names - dst_names:
        issues.append("html_tags_missing")
    return issues


def check_variables(original: str, translation: str, locale: str) -> list[str]:
    issues = []
    if _missing(_COLON_VAR, original, translation):
        issues.append("colon_variables")
    if _missing(_MUSTACHE_VAR, original, translation):
        issues.append("mustache_variables")
    if _missing(_DOLLAR_VAR, original, translation):
        issues.append("dollar_variables")
    return issues


def check_placeholders(original: str, translation: str, locale: str) -> list[str]:
    issues = []
    if len(_PRINTF.findall(original)) != len(_PRINTF.findall(translation)):
        issues.append("printf_placeholders")
    if _missing(_NAMED, original, translation):
        issues.append("named_placeholders")
    return issues


def check_urls(original: str, translation: str, locale: str) -> list[str]:
    return ["urls_missing"] if _missing(_URL, original, translation) else []


def check_emails(original: str, translation: str, locale: str) -> list[str]:
    return ["emails_missing"] if _missing(_EMAIL, original, translation) else []


def check_numbers(original: str, translation: str, locale: str) -> list[str]:
    src = {n.replace(",", ".") for n in _NUMBER.findall(original)}
    dst = {n.replace(",", ".") for n in _NUMBER.findall(translation)}
    return ["numbers_mismatch"] if src - dst else []


class ValidationPlugin(MiddlewarePlugin):
    """Validates translations once the rest of the ``validation`` stage has run."""

    name = "validation"
    stage = st.VALIDATION
    priority = -100

    def __init__(self, config: ValidationConfig | None = None) -> None:
        super().__init__()
        self.config = config or ValidationConfig()
        self.config.validate()
        self._checks: dict[str, Check] = {
            "html": check_html,
            "variables": check_variables,
            "placeholders": check_placeholders,
            "length": self.check_length,
            "urls": check_urls,
            "emails": check_emails,
            "numbers": check_numbers,
        }

    @property
    def available_checks(self) -> list[str]:
        return list(self._checks)

    def enabled_checks(self, context: RunContext | None = None) -> list[str]:
        requested = self.config.checks
        if context is not None:
            requested = self.option(context, "checks", requested)
        if "all" in requested:
            return self.available_checks
        return [c for c in requested if c in self._checks]

    def check_length(self, original: str, translation: str, locale: str) -> list[str]:
        if not original:
            return []
        ratio = len(translation) / len(original)
        adjustment = _LENGTH_ADJUSTMENTS.get(locale[:2].lower(), 1.0)
        if ratio < self.config.min_length_ratio * adjustment:
            return ["length_too_short"]
        if ratio > self.config.max_length_ratio * adjustment:
            return ["length_too_long"]
        return []

    def validate_pair(self, original: str, translation: str, locale: str, checks: list[str]) -> list[str]:
        issues: list[str] = []
        for name in checks:
            issues.extend(self._checks[name](original, translation, locale))
        return issues

    def handle(self, context: RunContext, next_: Next) -> HandlerResult:
        result = next_(context)
        if self.should_skip(context):
            return result

        strict = self.option(context, "strict", self.config.strict)
        checks = self.enabled_checks(context)
        failures = 0

        for locale in list(context.translations):
            for key, translation in context.get_translations(locale).items():
                original = context.texts.get(key)
                if not original:
                    continue
                issues = self.validate_pair(original, translation, locale, checks)
                if not issues:
                    continue
                message = f"Validation issues for '{key}' in '{locale}': {', '.join(issues)}"
                if strict:
                    context.add_error(message)
                    failures += 1
                else:
                    context.add_warning(message)

        if failures:
            raise TranslationValidationError(f"{failures} translation(s) failed validation")
        return result
