"""Data models for traffic records, batches, and the generation cache."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class CacheStatus(str, Enum):
    """Outcome of one batch generation attempt."""

    OK = "ok"
    FAILED = "failed"


class SessionStatus(str, Enum):
    """Lifecycle status of a captured traffic session."""

    IMPORTED = "imported"
    GENERATING = "generating"
    GENERATED = "generated"
    PARTIAL_GENERATED = "partial_generated"
    FAILED = "failed"


@dataclass(frozen=True)
class TrafficRecord:
    """One captured request/response pair.

    Attributes:
        seq: Position of the record in the capture.
        method: HTTP method.
        path: Request path without query string.
        query_params: Multi-valued query parameters.
        status_code: Response status code.
        timestamp: When the request was sent.
        call_count: Number of equivalent requests collapsed into this record.
    """

    seq: int
    method: str
    path: str
    status_code: int = 0
    host: str = ""
    query_params: dict[str, list[str]] = field(default_factory=dict)
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str = ""
    content_type: str = ""
    response_headers: dict[str, str] = field(default_factory=dict)
    response_body: str = ""
    response_content_type: str = ""
    timestamp: datetime | None = None
    latency_ms: int = 0
    call_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable form of the record."""
        return {
            "seq": self.seq,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "method": self.method,
            "host": self.host,
            "path": self.path,
            "query_params": self.query_params,
            "request_headers": self.request_headers,
            "request_body": self.request_body,
            "content_type": self.content_type,
            "status_code": self.status_code,
            "response_headers": self.response_headers,
            "response_body": self.response_body,
            "response_content_type": self.response_content_type,
            "latency_ms": self.latency_ms,
            "call_count": self.call_count,
        }


@dataclass(frozen=True)
class Batch:
    """A token-bounded, ordered slice of records sent to the LLM together.

    Attributes:
        index: Zero-based position of the batch within one split.
        records: Records in processing order.
        key: Shared path-prefix group, "mixed", or "empty".
    """

    index: int
    records: tuple[TrafficRecord, ...]
    key: str

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class CacheEntry:
    """Persisted outcome of one batch generation attempt."""

    session_id: str
    batch_index: int
    batch_key: str
    status: CacheStatus
    model: str = ""
    raw_output: str = ""
    error_message: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Session:
    """A captured traffic session tracked by the store."""

    id: str
    scenario: str
    source: str = ""
    host: str = ""
    record_count: int = 0
    status: SessionStatus = SessionStatus.IMPORTED
    created_at: datetime | None = None
    updated_at: datetime | None = None
