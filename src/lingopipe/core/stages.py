"""Stage names and the fixed core execution order."""

from __future__ import annotations

PRE_PROCESS = "pre_process"
DIFF_DETECTION = "diff_detection"
PREPARATION = "preparation"
CHUNKING = "chunking"
TRANSLATION = "translation"
CONSENSUS = "consensus"
VALIDATION = "validation"
POST_PROCESS = "post_process"
OUTPUT = "output"

CORE_STAGES: tuple[str, ...] = (
    PRE_PROCESS,
    DIFF_DETECTION,
    PREPARATION,
    CHUNKING,
    TRANSLATION,
    CONSENSUS,
    VALIDATION,
    POST_PROCESS,
    OUTPUT,
)

# Stages every useful pipeline has handlers for
ESSENTIAL_STAGES: frozenset[str] = frozenset({TRANSLATION, VALIDATION, OUTPUT})


def is_essential(stage: str) -> bool:
    return stage in ESSENTIAL_STAGES


# Lifecycle event names

TRANSLATION_STARTED = "translation.started"
TRANSLATION_COMPLETED = "translation.completed"
TRANSLATION_FAILED = "translation.failed"
TRANSLATION_CANCELLED = "translation.cancelled"


def stage_started(stage: str) -> str:
    return f"stage.{stage}.started"


def stage_completed(stage: str) -> str:
    return f"stage.{stage}.completed"
