"""Turn captured HTTP traffic into API documentation with an LLM."""
