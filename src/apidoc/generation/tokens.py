"""Token estimation for traffic payloads.

Model tokenizers are not available offline, so token cost is approximated
from character counts: Han ideographs average about two characters per
token, everything else about four.
"""

import json
from collections.abc import Sequence

from apidoc.models import TrafficRecord

# Code point ranges of the Han script (CJK ideographs, radicals, and
# ideographic marks).
_HAN_RANGES: tuple[tuple[int, int], ...] = (
    (0x2E80, 0x2E99),
    (0x2E9B, 0x2EF3),
    (0x2F00, 0x2FD5),
    (0x3005, 0x3005),
    (0x3007, 0x3007),
    (0x3021, 0x3029),
    (0x3038, 0x303B),
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xF900, 0xFA6D),
    (0xFA70, 0xFAD9),
    (0x16FE2, 0x16FE3),
    (0x16FF0, 0x16FF1),
    (0x20000, 0x2A6DF),
    (0x2A700, 0x2EBEF),
    (0x2EBF0, 0x2EE5D),
    (0x2F800, 0x2FA1F),
    (0x30000, 0x323AF),
)


def is_han(char: str) -> bool:
    """Return True if the character belongs to the Han script."""
    code = ord(char)
    return any(low <= code <= high for low, high in _HAN_RANGES)


def estimate_tokens(text: str) -> int:
    """Estimate token count for text.

    Args:
        text: Text to estimate tokens for.

    Returns:
        ceil(han / 2) + ceil(other / 4), where han counts Han ideographs
        and other counts all remaining characters.
    """
    if not text:
        return 0

    chinese = 0
    other = 0
    for char in text:
        if is_han(char):
            chinese += 1
        else:
            other += 1
    return (chinese + 1) // 2 + (other + 3) // 4


def serialize_records(records: Sequence[TrafficRecord]) -> str:
    """Serialize records to the compact JSON used for token estimation."""
    return json.dumps([record.to_dict() for record in records], ensure_ascii=False)


def estimate_record_tokens(records: Sequence[TrafficRecord]) -> int:
    """Estimate the token cost of the JSON serialization of records."""
    return estimate_tokens(serialize_records(records))
