"""Merging of per-batch documents into one."""

from collections.abc import Iterable

from apidoc.generation.schemas import GeneratedDocument


def merge_documents(docs: Iterable[GeneratedDocument | None]) -> GeneratedDocument:
    """Merge per-batch documents in batch order.

    - scenario: first non-empty scenario.
    - endpoints: de-duplicated by uppercase method + path; the first
      occurrence wins and later duplicates are dropped whole.
    - call_chain: taken from the last document, not concatenated.

    Args:
        docs: Documents in batch order; None entries are skipped.

    Returns:
        A new merged document.
    """
    merged = GeneratedDocument()
    seen: set[str] = set()

    for doc in docs:
        if doc is None:
            continue
        if not merged.scenario:
            merged.scenario = doc.scenario
        for endpoint in doc.endpoints:
            if endpoint.identity in seen:
                continue
            seen.add(endpoint.identity)
            merged.endpoints.append(endpoint)
        merged.call_chain = doc.call_chain

    return merged
