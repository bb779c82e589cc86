"""Explicit configuration objects for the pipeline and its built-in plugins.

Configuration is built once (from defaults or a TOML file) and handed to each
plugin at construction time. Nothing reads configuration globally.

Example TOML:

    continue_on_provider_error = true

    [chunking]
    max_tokens_per_chunk = 4000
    max_workers = 2
    buffer_percentage = 0.8

    [diff]
    use_cache = true
    storage_path = ".lingopipe/states"
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from lingopipe.errors import ConfigurationError

DEFAULT_STATE_DIR = Path(".lingopipe") / "states"

DEFAULT_MULTIPLIERS: dict[str, float] = {
    "cjk": 1.5,
    "arabic": 0.8,
    "cyrillic": 0.7,
    "latin": 0.25,
    "devanagari": 1.0,
    "thai": 1.2,
}


@dataclass
class ChunkingConfig:
    max_tokens_per_chunk: int = 2000
    buffer_percentage: float = 0.9
    multipliers: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_MULTIPLIERS))
    overhead: int = 20
    # Stages each chunk is dispatched through, ending at this one (inclusive)
    dispatch_through: str = "validation"
    join_with: str = " "
    max_workers: int = 1
    channel_size: int = 8

    @property
    def effective_budget(self) -> int:
        return int(self.max_tokens_per_chunk * self.buffer_percentage)

    def validate(self) -> None:
        if self.max_tokens_per_chunk <= 0:
            raise ConfigurationError("chunking.max_tokens_per_chunk must be positive")
        if not 0 < self.buffer_percentage <= 1:
            raise ConfigurationError("chunking.buffer_percentage must be in (0, 1]")
        if self.overhead < 0:
            raise ConfigurationError("chunking.overhead must not be negative")
        if self.max_workers < 1:
            raise ConfigurationError("chunking.max_workers must be at least 1")
        if self.channel_size < 1:
            raise ConfigurationError("chunking.channel_size must be at least 1")
        for script, value in self.multipliers.items():
            if value < 0:
                raise ConfigurationError(f"chunking.multipliers.{script} must not be negative")


@dataclass
class DiffConfig:
    enabled: bool = True
    storage_path: Path = DEFAULT_STATE_DIR
    ttl: int | None = None
    use_cache: bool = False
    invalidate_on_error: bool = True
    algorithm: str = "sha256"
    include_keys: bool = True
    normalize_whitespace: bool = True
    track_metadata: bool = True
    track_tokens: bool = True
    versioning: bool = True
    max_versions: int = 10
    state_version: str = "1.0.0"

    def validate(self) -> None:
        if self.algorithm not in hashlib.algorithms_available:
            raise ConfigurationError(f"diff.algorithm: unknown digest '{self.algorithm}'")
        if self.max_versions < 0:
            raise ConfigurationError("diff.max_versions must not be negative")
        if self.ttl is not None and self.ttl <= 0:
            raise ConfigurationError("diff.ttl must be positive when set")


@dataclass
class ValidationConfig:
    checks: list[str] = field(default_factory=lambda: ["all"])
    strict: bool = False
    min_length_ratio: float = 0.5
    max_length_ratio: float = 2.0

    def validate(self) -> None:
        if self.min_length_ratio > self.max_length_ratio:
            raise ConfigurationError("validation.min_length_ratio exceeds max_length_ratio")


@dataclass
class LingopipeConfig:
    """Top-level configuration for one pipeline instance."""

    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    diff: DiffConfig = field(default_factory=DiffConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    continue_on_provider_error: bool = False

    def validate(self) -> LingopipeConfig:
        self.chunking.validate()
        self.diff.validate()
        self.validation.validate()
        return self


def _apply(target: Any, values: dict[str, Any], section: str) -> None:
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigurationError(f"Unknown option '{section}{key}'")
        if key == "storage_path":
            value = Path(value)
        if key == "multipliers":
            merged = dict(DEFAULT_MULTIPLIERS)
            merged.update(value)
            value = merged
        setattr(target, key, value)


def config_from_dict(data: dict[str, Any]) -> LingopipeConfig:
    """Build and validate a config from a plain mapping (e.g. parsed TOML)."""
    config = LingopipeConfig()
    for section in ("chunking", "diff", "validation"):
        values = data.get(section, {})
        if not isinstance(values, dict):
            raise ConfigurationError(f"[{section}] must be a table")
        _apply(getattr(config, section), values, f"{section}.")
    top = {k: v for k, v in data.items() if k not in ("chunking", "diff", "validation")}
    _apply(config, top, "")
    return config.validate()


def load_config(path: str | Path) -> LingopipeConfig:
    """Load configuration from a TOML file."""
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
    return config_from_dict(data)
