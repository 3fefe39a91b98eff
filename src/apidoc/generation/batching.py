# src/apidoc/generation/batching.py
"""Token-bounded batching of traffic records.

Records are grouped by path prefix so that calls to the same resource are
documented together, then whole groups are packed greedily into batches
that fit the token budget. Grouping on the first few path segments is a
heuristic: one group can still be larger than the budget on its own. Such
a group is emitted as its own oversized batch rather than being split or
dropped, so every record is always sent to the LLM exactly once.
"""

from collections.abc import Sequence

from apidoc.constants import (
    EMPTY_BATCH_KEY,
    MIXED_BATCH_KEY,
    PATH_PREFIX_SEGMENTS,
    ROOT_PATH_PREFIX,
)
from apidoc.generation.tokens import estimate_record_tokens
from apidoc.models import Batch, TrafficRecord


def path_prefix(path: str) -> str:
    """Return the grouping key for a request path.

    Args:
        path: Request path, e.g. "/api/v1/users/42".

    Returns:
        The first PATH_PREFIX_SEGMENTS segments ("/api/v1/users"), or "/"
        for the root or an empty path.
    """
    parts = path.strip("/").split("/")
    if not parts[0]:
        return ROOT_PATH_PREFIX
    return "/" + "/".join(parts[:PATH_PREFIX_SEGMENTS])


def batch_key(records: Sequence[TrafficRecord]) -> str:
    """Name a batch after the path-prefix group its records share."""
    if not records:
        return EMPTY_BATCH_KEY
    keys = {path_prefix(record.path) for record in records}
    if len(keys) == 1:
        return keys.pop()
    return MIXED_BATCH_KEY


def should_batch(records: Sequence[TrafficRecord], max_tokens: int) -> bool:
    """Check whether records likely exceed the token budget as a whole."""
    if max_tokens <= 0:
        return False
    return estimate_record_tokens(records) > max_tokens


def group_by_prefix(records: Sequence[TrafficRecord]) -> dict[str, list[TrafficRecord]]:
    """Group records by path prefix, preserving first-seen group order."""
    groups: dict[str, list[TrafficRecord]] = {}
    for record in records:
        groups.setdefault(path_prefix(record.path), []).append(record)
    return groups


def _make_batches(chunks: list[list[TrafficRecord]]) -> list[Batch]:
    return [
        Batch(index=index, records=tuple(chunk), key=batch_key(chunk))
        for index, chunk in enumerate(chunks)
    ]


def split_batches(records: Sequence[TrafficRecord], max_tokens: int) -> list[Batch]:
    """Split records into token-bounded batches of whole path-prefix groups.

    Args:
        records: Filtered and sanitized records in processing order.
        max_tokens: Token budget per batch; 0 or less means unlimited.

    Returns:
        Ordered, non-empty batches. Empty input yields no batches.
    """
    if not records:
        return []
    if max_tokens <= 0:
        return _make_batches([list(records)])

    chunks: list[list[TrafficRecord]] = []
    current: list[TrafficRecord] = []
    current_tokens = 0

    for group in group_by_prefix(records).values():
        group_tokens = estimate_record_tokens(group)

        if current and current_tokens + group_tokens > max_tokens:
            chunks.append(current)
            current = []
            current_tokens = 0

        if not current and group_tokens > max_tokens:
            # Oversized group: emitted alone, never split
            chunks.append(list(group))
            continue

        current.extend(group)
        current_tokens += group_tokens

    if current:
        chunks.append(current)

    return _make_batches(chunks)
