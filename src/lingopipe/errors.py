"""Exception hierarchy shared by the pipeline, plugins, providers and storage."""

from __future__ import annotations


class LingopipeError(Exception):
    """Base class for all lingopipe errors."""


class ConfigurationError(LingopipeError):
    """Invalid stage names, options or plugin wiring. Raised before a run starts."""


class ServiceNotFoundError(ConfigurationError):
    """No handler is registered under the requested service name."""


class DependencyError(ConfigurationError):
    """A plugin depends on a plugin that is missing, or dependencies form a cycle."""


class ProviderError(LingopipeError):
    """A translation provider failed (transport, timeout, quota...)."""

    def __init__(self, message: str, *, provider: str = "", retryable: bool = False) -> None:
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class StorageError(LingopipeError):
    """A storage backend could not read or write a value."""


class TranslationValidationError(LingopipeError):
    """Translated content failed structural checks in strict mode."""


class ContextCompletedError(LingopipeError):
    """A run context was mutated after complete() was called."""


class CancelledError(LingopipeError):
    """Raised when the caller cancels a run."""
