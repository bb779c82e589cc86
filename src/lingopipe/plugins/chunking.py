"""Token-bounded chunking of the working set, with reassembly of split texts.

The handler packs ``context.texts`` into chunks whose estimated token sum fits
the effective budget, then sends every chunk through the stages that follow
``chunking`` (up to ``dispatch_through``) on a forked context. Children are
merged back by the dispatching thread only. A text too large for any chunk is
split into sentence groups keyed ``<key>_part_<n>``; the terminator joins the
translated parts again.
"""

from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lingopipe.config import ChunkingConfig
from lingopipe.core import stages as st
from lingopipe.core.context import ContextSnapshot, RunContext
from lingopipe.core.pipeline import HandlerResult, Next, PipelineEngine
from lingopipe.core.plugin import MiddlewarePlugin
from lingopipe.core.request import TranslationOutput
from lingopipe.core.stream import ChannelClosed, OutputChannel
from lingopipe.errors import ConfigurationError
from lingopipe.translation.tokens import TokenEstimator

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|(?<=[。！？])\s*")
_PART_KEY = re.compile(r"^(.+)_part_(\d+)$")

Chunk = dict[str, str]


def part_key(key: str, index: int) -> str:
    return f"{key}_part_{index}"


def base_key(key: str) -> str:
    """Strip a ``_part_<n>`` suffix, if any."""
    match = _PART_KEY.match(key)
    return match.group(1) if match else key


@dataclass
class _ChunkResult:
    index: int
    child: RunContext
    outputs: list[TranslationOutput] = field(default_factory=list)
    error: BaseException | None = None


class TokenChunkingPlugin(MiddlewarePlugin):
    """Keeps every provider call under the token budget."""

    name = "token_chunking"
    stage = st.CHUNKING
    priority = 100

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        super().__init__()
        self.config = config or ChunkingConfig()
        self.config.validate()
        self.estimator = TokenEstimator(self.config.multipliers, self.config.overhead)
        self._pipeline: PipelineEngine | None = None

    def boot(self, pipeline: PipelineEngine) -> None:
        super().boot(pipeline)
        self._pipeline = pipeline
        pipeline.register_service("chunking.estimate_tokens", self.estimator.estimate)

    def effective_budget(self, context: RunContext | None = None) -> int:
        if context is None:
            return self.config.effective_budget
        max_tokens = self.option(context, "max_tokens_per_chunk", self.config.max_tokens_per_chunk)
        return int(max_tokens * self.config.buffer_percentage)

    # ── packing ──

    def create_chunks(
        self,
        texts: Mapping[str, str],
        budget: int,
        split_parts: dict[str, list[str]] | None = None,
    ) -> list[Chunk]:
        """Greedy, order-preserving packing of ``texts`` under ``budget``.

        When ``split_parts`` is given it receives, for every split text, the
        part keys generated for it in order.
        """
        chunks: list[Chunk] = []
        current: Chunk = {}
        current_tokens = 0
        reserved = set(texts)

        for key, text in texts.items():
            tokens = self.estimator.estimate(text)

            if tokens > budget:
                if current:
                    chunks.append(current)
                    current, current_tokens = {}, 0
                parts = self.split_large_text(key, text, budget, reserved)
                keys = [k for part in parts for k in part]
                reserved.update(keys)
                if split_parts is not None:
                    split_parts[key] = keys
                chunks.extend(parts)
                continue

            if current and current_tokens + tokens > budget:
                chunks.append(current)
                current, current_tokens = {}, 0

            current[key] = text
            current_tokens += tokens

        if current:
            chunks.append(current)
        return chunks

    def split_large_text(
        self,
        key: str,
        text: str,
        budget: int,
        reserved: set[str] | frozenset[str] = frozenset(),
    ) -> list[Chunk]:
        """Split one oversized text into single-entry ``<key>_part_<n>`` chunks.

        Part indexes that would produce a key in ``reserved`` are skipped.
        """
        pieces: list[str] = []
        for sentence in self.split_into_sentences(text):
            if self.estimator.estimate(sentence) <= budget:
                pieces.append(sentence)
                continue
            # A lone sentence still too large is packed word by word
            for word in sentence.split():
                if self.estimator.estimate(word) > budget:
                    pieces.extend(self.split_by_characters(word, budget))
                else:
                    pieces.append(word)

        groups: list[str] = []
        group: list[str] = []
        group_tokens = 0
        for piece in pieces:
            tokens = self.estimator.estimate(piece)
            if group and group_tokens + tokens > budget:
                groups.append(self.config.join_with.join(group))
                group, group_tokens = [], 0
            group.append(piece)
            group_tokens += tokens
        if group:
            groups.append(self.config.join_with.join(group))

        parts: list[Chunk] = []
        index = 0
        for value in groups:
            while part_key(key, index) in reserved:
                index += 1
            parts.append({part_key(key, index): value})
            index += 1

        logger.debug("Split %s into %d parts", key, len(parts))
        return parts

    def split_by_characters(self, text: str, budget: int) -> list[str]:
        """Cut ``text`` into the longest runs of characters that fit ``budget``.

        Used for scripts written without spaces. A run is never shorter than
        one character, so a budget below the per-text overhead still ends.
        """
        pieces: list[str] = []
        rest = text
        while rest:
            room = budget - self.estimator.overhead
            multiplier = self.estimator.multiplier_for(rest)
            size = int(room / multiplier) if multiplier > 0 else len(rest)
            size = max(1, min(size, len(rest)))
            while size > 1 and self.estimator.estimate(rest[:size]) > budget:
                size -= 1
            pieces.append(rest[:size])
            rest = rest[size:]
        return pieces

    @staticmethod
    def split_into_sentences(text: str) -> list[str]:
        sentences = [s for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]
        if len(sentences) <= 1:
            sentences = [line for line in text.split("\n") if line.strip()]
        return sentences or [text]

    # ── stage handler ──

    def handle(self, context: RunContext, next_: Next) -> HandlerResult:
        if self.should_skip(context) or not context.texts:
            return next_(context)
        if self._pipeline is None:
            raise ConfigurationError(f"{self.name} must be booted into a pipeline before use")

        original = dict(context.texts)
        budget = self.effective_budget(context)
        split_parts: dict[str, list[str]] = {}
        chunks = self.create_chunks(original, budget, split_parts)
        stages = self._pipeline.stages_between(st.CHUNKING, self.config.dispatch_through)

        data = context.plugin_data(self.name)
        data.update(
            original_texts=original,
            total_chunks=len(chunks),
            chunk_sizes=[len(c) for c in chunks],
            split_keys=sorted(split_parts),
            split_parts=split_parts,
            budget=budget,
        )
        logger.info(
            "Dispatching %d texts in %d chunk(s), budget %d tokens",
            len(original), len(chunks), budget,
        )

        if self.config.max_workers > 1 and len(chunks) > 1:
            results = self._dispatch_parallel(context, chunks, stages)
        else:
            results = self._dispatch_sequential(context, chunks, stages)

        outputs: list[TranslationOutput] = []
        for result in results:
            outputs.extend(result.outputs)
        data["chunk_outputs"] = [len(r.outputs) for r in results]

        context.texts = original
        context.completed_stages.update(stages)

        rest = next_(context)
        if rest is not None:
            outputs.extend(rest)
        return outputs

    def _fork(self, context: RunContext, index: int, chunk: Chunk, total: int) -> RunContext:
        child = context.fork(chunk)
        child.metadata["chunk_info"] = {
            "current": index + 1,
            "total": total,
            "size": len(chunk),
        }
        return child

    def _run_chunk(
        self,
        context: RunContext,
        index: int,
        chunk: Chunk,
        total: int,
        stages: list[str],
    ) -> _ChunkResult:
        child = self._fork(context, index, chunk, total)
        logger.debug(
            "Processing chunk %d/%d (%d texts, ~%d tokens)",
            index + 1, total, len(chunk), self.estimator.estimate_many(chunk),
        )
        try:
            outputs = self._pipeline.run_stages(child, stages)  # type: ignore[union-attr]
        except Exception as e:
            return _ChunkResult(index, child, error=e)
        return _ChunkResult(index, child, outputs)

    def _dispatch_sequential(
        self,
        context: RunContext,
        chunks: list[Chunk],
        stages: list[str],
    ) -> list[_ChunkResult]:
        results = []
        for index, chunk in enumerate(chunks):
            context.check_cancelled()
            result = self._run_chunk(context, index, chunk, len(chunks), stages)
            context.merge(result.child)
            if result.error is not None:
                raise result.error
            results.append(result)
            if context.aborted:
                logger.info("Chunk %d aborted the run; remaining chunks skipped", index + 1)
                break
        return results

    def _dispatch_parallel(
        self,
        context: RunContext,
        chunks: list[Chunk],
        stages: list[str],
    ) -> list[_ChunkResult]:
        """Run chunks on a thread pool; the calling thread merges results as they arrive."""
        channel: OutputChannel[_ChunkResult] = OutputChannel(self.config.channel_size)
        total = len(chunks)
        pending = total
        lock = threading.Lock()

        def work(index: int, chunk: Chunk) -> None:
            nonlocal pending
            try:
                if context.cancel_event is not None and context.cancel_event.is_set():
                    return
                result = self._run_chunk(context, index, chunk, total, stages)
                try:
                    channel.send(result)
                except ChannelClosed:
                    logger.debug("Result of chunk %d dropped, channel closed", index + 1)
            finally:
                with lock:
                    pending -= 1
                    last = pending == 0
                if last:
                    channel.close()

        results: dict[int, _ChunkResult] = {}
        pool = ThreadPoolExecutor(
            max_workers=min(self.config.max_workers, total),
            thread_name_prefix="lingopipe-chunk",
        )
        try:
            for index, chunk in enumerate(chunks):
                pool.submit(work, index, chunk)
            for result in channel:
                context.merge(result.child)
                results[result.index] = result
                context.check_cancelled()
        except BaseException:
            channel.cancel()
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)

        context.check_cancelled()
        ordered = [results[i] for i in sorted(results)]
        for result in ordered:
            if result.error is not None:
                raise result.error
        return ordered

    # ── reassembly ──

    def terminate(self, context: RunContext, snapshot: ContextSnapshot) -> None:
        data = context.get_plugin_data(self.name)
        if not data or not data.get("split_parts"):
            return
        split_parts: dict[str, list[str]] = data["split_parts"]
        generated = {k for keys in split_parts.values() for k in keys}

        for locale, translations in list(context.translations.items()):
            if not generated.intersection(translations):
                continue
            merged = {k: v for k, v in translations.items() if k not in generated}
            for key, part_keys in split_parts.items():
                pieces = [translations[k] for k in part_keys if k in translations]
                if pieces:
                    merged[key] = self.config.join_with.join(pieces).strip()
            context.replace_translations(locale, merged)
            logger.debug("Reassembled split texts for %s", locale)
