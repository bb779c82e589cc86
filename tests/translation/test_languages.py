"""Tests for locale metadata."""

import pytest

from lingopipe.translation.languages import (
    get_language,
    language_name,
    normalize_locale,
    plural_forms,
)


class TestLanguages:
    def test_normalize(self):
        assert normalize_locale(" pt-BR ") == "pt_br"

    def test_names(self):
        assert language_name("ko") == "Korean"
        assert language_name("pt-BR") == "Portuguese (Brazil)"
        assert language_name("de_AT") == "German"
        assert language_name("xx") is None

    @pytest.mark.parametrize("locale,forms", [
        ("ja", 1), ("ko", 1), ("ru", 3), ("pl", 3), ("ar", 6), ("en", 2), ("fr", 2),
    ])
    def test_plural_forms(self, locale, forms):
        assert plural_forms(locale) == forms

    def test_get_language(self):
        lang = get_language("zh-TW")
        assert lang.code == "zh_tw"
        assert lang.name == "Chinese (Traditional)"
        assert lang.plural_forms == 1

    def test_get_language_by_name(self):
        assert get_language("Korean").code == "ko"

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_language("klingon")
