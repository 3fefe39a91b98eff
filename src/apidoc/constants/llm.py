"""LLM gateway configuration.

Defaults for the chat-completion endpoint. Every value can be overridden
through the [llm] section of config.ini or the APIDOC_LLM_* environment
variables.
"""

# =============================================================================
# Endpoint Defaults
# =============================================================================
# Any OpenAI-compatible endpoint works; BASE_URL is joined with
# CHAT_COMPLETIONS_PATH to form the request URL.

DEFAULT_MODEL = "gpt-4o"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
CHAT_COMPLETIONS_PATH = "/chat/completions"

# =============================================================================
# Generation Defaults
# =============================================================================
# MAX_TOKENS caps the response length and doubles as the per-batch input
# budget used by the batch splitter. TEMPERATURE stays low for JSON output.

MAX_TOKENS = 4096
TEMPERATURE = 0.2

# =============================================================================
# Resilience
# =============================================================================
# A request is attempted at most MAX_RETRIES + 1 times. The wait before
# retry n (0-based) is INITIAL_BACKOFF_SECONDS * 2**n unless a 429 response
# carries a Retry-After hint.

REQUEST_TIMEOUT_SECONDS = 120.0
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
