"""Configuration constants.

Re-exports all config for convenient importing:
    from apidoc.constants import MAX_TOKENS, MAX_RETRIES
"""

from apidoc.constants.generation import *  # noqa: F403
from apidoc.constants.llm import *  # noqa: F403
