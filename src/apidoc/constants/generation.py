"""Documentation generation configuration.

These settings control how traffic records are grouped into batches and
how much of each record is shown to the LLM.
"""

# =============================================================================
# Batching
# =============================================================================
# Records are grouped by the first PATH_PREFIX_SEGMENTS segments of their
# path so related calls land in the same batch. Batch keys fall back to
# MIXED_BATCH_KEY / EMPTY_BATCH_KEY when a batch spans several groups or
# holds no records.

PATH_PREFIX_SEGMENTS = 3
ROOT_PATH_PREFIX = "/"
MIXED_BATCH_KEY = "mixed"
EMPTY_BATCH_KEY = "empty"

# =============================================================================
# Prompt Shaping
# =============================================================================
# Large captures repeat the same path many times. Above DEDUP_RECORD_THRESHOLD
# records only the first call per path is sent. Request bodies longer than
# MAX_REQUEST_BODY_CHARS are reduced to their top-level scalar fields, and
# string values longer than MAX_FIELD_VALUE_CHARS are replaced by
# TRUNCATED_PLACEHOLDER.

DEDUP_RECORD_THRESHOLD = 30
MAX_REQUEST_BODY_CHARS = 2000
MAX_FIELD_VALUE_CHARS = 200
TRUNCATED_PLACEHOLDER = "[truncated]"
