"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from lingopipe.config import (
    DEFAULT_MULTIPLIERS,
    ChunkingConfig,
    DiffConfig,
    LingopipeConfig,
    ValidationConfig,
    config_from_dict,
    load_config,
)
from lingopipe.errors import ConfigurationError


class TestDefaults:
    def test_effective_budget(self):
        assert ChunkingConfig().effective_budget == 1800
        assert ChunkingConfig(max_tokens_per_chunk=1000, buffer_percentage=0.5).effective_budget == 500

    def test_defaults_validate(self):
        assert LingopipeConfig().validate() is not None

    def test_multipliers_not_shared(self):
        a, b = ChunkingConfig(), ChunkingConfig()
        a.multipliers["cjk"] = 9.0
        assert b.multipliers["cjk"] == DEFAULT_MULTIPLIERS["cjk"]


class TestValidation:
    @pytest.mark.parametrize("kwargs", [
        {"max_tokens_per_chunk": 0},
        {"buffer_percentage": 0},
        {"buffer_percentage": 1.5},
        {"overhead": -1},
        {"max_workers": 0},
        {"multipliers": {"latin": -1.0}},
    ])
    def test_chunking_rejects(self, kwargs):
        with pytest.raises(ConfigurationError):
            ChunkingConfig(**kwargs).validate()

    def test_diff_rejects_unknown_algorithm(self):
        with pytest.raises(ConfigurationError, match="unknown digest"):
            DiffConfig(algorithm="nope").validate()

    def test_diff_rejects_bad_ttl(self):
        with pytest.raises(ConfigurationError):
            DiffConfig(ttl=0).validate()

    def test_validation_ratio_order(self):
        with pytest.raises(ConfigurationError):
            ValidationConfig(min_length_ratio=3.0, max_length_ratio=2.0).validate()


class TestLoadConfig:
    def test_from_dict(self):
        config = config_from_dict({
            "continue_on_provider_error": True,
            "chunking": {"max_tokens_per_chunk": 4000, "multipliers": {"cjk": 2.0}},
            "diff": {"use_cache": True, "storage_path": "state"},
        })
        assert config.continue_on_provider_error
        assert config.chunking.max_tokens_per_chunk == 4000
        assert config.chunking.multipliers["cjk"] == 2.0
        assert config.chunking.multipliers["latin"] == DEFAULT_MULTIPLIERS["latin"]
        assert config.diff.use_cache
        assert config.diff.storage_path == Path("state")

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="chunking.max_tokens"):
            config_from_dict({"chunking": {"max_tokens": 10}})

    def test_section_must_be_table(self):
        with pytest.raises(ConfigurationError, match="must be a table"):
            config_from_dict({"diff": 3})

    def test_load_toml(self, tmp_path):
        path = tmp_path / "lingopipe.toml"
        path.write_text(
            "[chunking]\nmax_workers = 2\n\n[validation]\nstrict = true\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.chunking.max_workers == 2
        assert config.validation.strict

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[chunking\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_values_rejected_on_load(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[chunking]\nmax_workers = 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)
