"""API documentation generation pipeline module."""

from apidoc.generation.batching import (
    batch_key,
    path_prefix,
    should_batch,
    split_batches,
)
from apidoc.generation.merge import merge_documents
from apidoc.generation.orchestrator import (
    BatchCacheStore,
    GenerationError,
    GenerationOrchestrator,
    GenerationPhase,
    GenerationProgress,
    SessionStatusStore,
)
from apidoc.generation.prompts import SYSTEM_PROMPT, build_user_prompt
from apidoc.generation.schemas import (
    DocumentParseError,
    Endpoint,
    GeneratedDocument,
    parse_document,
)
from apidoc.generation.tokens import estimate_record_tokens, estimate_tokens

__all__ = [
    # Batching
    "batch_key",
    "path_prefix",
    "should_batch",
    "split_batches",
    # Merge
    "merge_documents",
    # Orchestrator
    "BatchCacheStore",
    "GenerationError",
    "GenerationOrchestrator",
    "GenerationPhase",
    "GenerationProgress",
    "SessionStatusStore",
    # Prompts
    "SYSTEM_PROMPT",
    "build_user_prompt",
    # Schemas
    "DocumentParseError",
    "Endpoint",
    "GeneratedDocument",
    "parse_document",
    # Tokens
    "estimate_record_tokens",
    "estimate_tokens",
]
