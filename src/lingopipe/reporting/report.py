"""Run report data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lingopipe.core.context import ContextSnapshot


@dataclass
class RunReport:
    """Summary of one pipeline run, built from its final context snapshot."""

    source_locale: str = ""
    target_locales: list[str] = field(default_factory=list)
    provider: str = ""

    total_texts: int = 0
    texts_sent: int = 0
    # locale → number of translations in the final result
    translated: dict[str, int] = field(default_factory=dict)
    # locale → {"added": n, "changed": n, "removed": n, "unchanged": n}
    diff: dict[str, dict[str, int]] = field(default_factory=dict)
    chunks: int = 0

    token_usage: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0
    aborted: bool = False
    failed: bool = False

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        if self.aborted:
            return "aborted"
        if self.warnings or self.errors:
            return "completed with warnings"
        return "completed"

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ContextSnapshot,
        *,
        source_locale: str = "",
        target_locales: list[str] | None = None,
        total_texts: int | None = None,
        provider: str = "",
    ) -> RunReport:
        chunking = snapshot.plugin_data.get("token_chunking") or {}
        return cls(
            source_locale=source_locale,
            target_locales=list(target_locales or snapshot.translations),
            provider=provider,
            total_texts=total_texts if total_texts is not None else len(snapshot.texts),
            texts_sent=len(snapshot.texts),
            translated={loc: len(t) for loc, t in snapshot.translations.items()},
            diff=dict(snapshot.metadata.get("diff", {})),
            chunks=int(chunking.get("total_chunks", 0)),
            token_usage=dict(snapshot.token_usage),
            duration_seconds=snapshot.duration,
            aborted=snapshot.aborted,
            failed=snapshot.failed,
            errors=list(snapshot.errors),
            warnings=list(snapshot.warnings),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "source_locale": self.source_locale,
            "target_locales": self.target_locales,
            "provider": self.provider,
            "total_texts": self.total_texts,
            "texts_sent": self.texts_sent,
            "translated": self.translated,
            "diff": self.diff,
            "chunks": self.chunks,
            "token_usage": self.token_usage,
            "duration_seconds": self.duration_seconds,
            "aborted": self.aborted,
            "failed": self.failed,
            "errors": self.errors,
            "warnings": self.warnings,
        }
