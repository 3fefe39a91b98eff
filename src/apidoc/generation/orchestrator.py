# src/apidoc/generation/orchestrator.py
"""Generation orchestrator for the API documentation pipeline.

This module provides the GenerationOrchestrator class that drives traffic
records through the LLM:

1. Preparing - Optionally discard the session's cache, split records into batches
2. Batches - For each batch in order, reuse a cached result or call the LLM,
   recording every outcome in the cache
3. Merging - Combine the per-batch documents into one

Batches are processed one at a time. A failed batch is recorded and
skipped; the run only fails when no batch produced a document.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Coroutine, Protocol

from apidoc.config import LLMConfig
from apidoc.generation.batching import batch_key, should_batch, split_batches
from apidoc.generation.merge import merge_documents
from apidoc.generation.prompts import SYSTEM_PROMPT, build_user_prompt
from apidoc.generation.schemas import DocumentParseError, GeneratedDocument, parse_document
from apidoc.llm.client import ChatCompletionClient, CompletionGateway, LLMError
from apidoc.models import Batch, CacheEntry, CacheStatus, SessionStatus, TrafficRecord

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when a generation run produces no document at all."""

    pass


class BatchCacheStore(Protocol):
    """Per-session storage of batch outcomes keyed by batch index."""

    def get_all(self, session_id: str) -> list[CacheEntry]: ...

    def upsert(self, entry: CacheEntry) -> None: ...

    def clear_all(self, session_id: str) -> None: ...


class SessionStatusStore(Protocol):
    """Receives session status transitions."""

    def set_status(self, session_id: str, status: SessionStatus) -> None: ...


class GenerationPhase(Enum):
    """Phases of documentation generation."""

    PREPARING = "preparing"
    BATCHES = "batches"
    MERGING = "merging"


@dataclass
class GenerationProgress:
    """Progress update during generation.

    Attributes:
        phase: Current generation phase.
        step: Current step number within phase.
        total_steps: Total steps in current phase.
        message: Human-readable progress message.
        timestamp: Time of progress update.
    """

    phase: GenerationPhase
    step: int = 0
    total_steps: int = 0
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


# Type alias for progress callback
ProgressCallback = Callable[[GenerationProgress], Coroutine[Any, Any, None]]


def decode_cached(entry: CacheEntry) -> GeneratedDocument:
    """Decode the raw output stored in an ok cache entry.

    Raises:
        DocumentParseError: If the stored output is empty or corrupted.
    """
    return parse_document(entry.raw_output)


class GenerationOrchestrator:
    """Drives batches of traffic records through the LLM with caching.

    Args:
        llm_config: Endpoint settings; max_tokens also bounds each batch.
        cache_store: Batch cache collaborator.
        status_store: Session status collaborator.
        gateway: Completion gateway. A ChatCompletionClient built from
            llm_config is used when omitted.
        log_path: JSONL query log for the default gateway, e.g.
            Config.llm_log_path.
    """

    def __init__(
        self,
        llm_config: LLMConfig,
        cache_store: BatchCacheStore,
        status_store: SessionStatusStore,
        gateway: CompletionGateway | None = None,
        log_path: Path | None = None,
    ):
        self.llm_config = llm_config
        self.cache_store = cache_store
        self.status_store = status_store
        self.gateway = gateway or ChatCompletionClient(llm_config, log_path=log_path)

    async def _emit(
        self,
        progress_callback: ProgressCallback | None,
        phase: GenerationPhase,
        message: str,
        step: int = 0,
        total_steps: int = 0,
    ) -> None:
        logger.info(message)
        if progress_callback:
            await progress_callback(
                GenerationProgress(phase=phase, step=step, total_steps=total_steps, message=message)
            )

    def plan_batches(self, records: Sequence[TrafficRecord]) -> list[Batch]:
        """Split records only when they exceed the configured token budget."""
        if should_batch(records, self.llm_config.max_tokens):
            return split_batches(records, self.llm_config.max_tokens)
        if not records:
            return []
        return [Batch(index=0, records=tuple(records), key=batch_key(records))]

    async def _generate_batch(self, scenario: str, batch: Batch) -> tuple[GeneratedDocument, str]:
        """Call the LLM for one batch and decode its output.

        Returns:
            Tuple of (decoded document, raw output text).
        """
        user_prompt = build_user_prompt(scenario, batch.records)
        raw = await self.gateway.complete(SYSTEM_PROMPT, user_prompt)
        doc = parse_document(raw)
        if not doc.scenario:
            doc.scenario = scenario
        return doc, raw

    async def run(
        self,
        session_id: str,
        scenario: str,
        records: Sequence[TrafficRecord],
        no_cache: bool = False,
        resume: bool = False,
        progress_callback: ProgressCallback | None = None,
    ) -> GeneratedDocument:
        """Generate documentation for a session's records.

        Args:
            session_id: Session the cache entries belong to.
            scenario: User's description of the captured scenario.
            records: Filtered and sanitized records in processing order.
            no_cache: Discard the session's cache before starting.
            resume: Reuse ok cache entries instead of calling the LLM.
            progress_callback: Optional async callback for progress updates.

        Returns:
            The merged document.

        Raises:
            GenerationError: If every batch failed.
        """
        if no_cache:
            self.cache_store.clear_all(session_id)

        self.status_store.set_status(session_id, SessionStatus.GENERATING)

        batches = self.plan_batches(records)
        total = len(batches)
        await self._emit(
            progress_callback,
            GenerationPhase.PREPARING,
            f"Split {len(records)} records into {total} batch(es)",
            total_steps=total,
        )

        cached: dict[int, CacheEntry] = {}
        if resume:
            cached = {entry.batch_index: entry for entry in self.cache_store.get_all(session_id)}

        docs: list[GeneratedDocument] = []
        has_failure = False

        for batch in batches:
            step = batch.index + 1
            entry = cached.get(batch.index)
            if entry is not None and entry.status == CacheStatus.OK:
                try:
                    docs.append(decode_cached(entry))
                except DocumentParseError as e:
                    logger.warning(
                        f"Cached output for batch {step}/{total} is unusable, regenerating: {e}"
                    )
                else:
                    await self._emit(
                        progress_callback,
                        GenerationPhase.BATCHES,
                        f"Batch {step}/{total} ({batch.key}): using cache",
                        step=step,
                        total_steps=total,
                    )
                    continue

            await self._emit(
                progress_callback,
                GenerationPhase.BATCHES,
                f"Batch {step}/{total} ({batch.key}): calling LLM",
                step=step,
                total_steps=total,
            )
            result = CacheEntry(
                session_id=session_id,
                batch_index=batch.index,
                batch_key=batch.key,
                status=CacheStatus.OK,
                model=self.llm_config.model,
            )
            try:
                doc, raw = await self._generate_batch(scenario, batch)
            except (LLMError, DocumentParseError) as e:
                logger.warning(f"Batch {step}/{total} ({batch.key}) failed: {e}")
                result.status = CacheStatus.FAILED
                result.error_message = str(e)
                has_failure = True
            else:
                result.raw_output = raw
                docs.append(doc)
            self.cache_store.upsert(result)

        if not docs:
            self.status_store.set_status(session_id, SessionStatus.FAILED)
            raise GenerationError("all batches failed")

        await self._emit(
            progress_callback,
            GenerationPhase.MERGING,
            f"Merging {len(docs)} document(s)",
            step=1,
            total_steps=1,
        )
        merged = merge_documents(docs)

        final_status = SessionStatus.PARTIAL_GENERATED if has_failure else SessionStatus.GENERATED
        self.status_store.set_status(session_id, final_status)
        return merged
