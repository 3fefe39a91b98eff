# src/apidoc/generation/prompts.py
"""Prompt templates for API documentation generation."""

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from apidoc.constants import (
    DEDUP_RECORD_THRESHOLD,
    MAX_FIELD_VALUE_CHARS,
    MAX_REQUEST_BODY_CHARS,
    TRUNCATED_PLACEHOLDER,
)
from apidoc.models import TrafficRecord


@dataclass
class PromptTemplate:
    """A template for generating prompts with variable substitution."""

    template: str

    def render(self, **kwargs: Any) -> str:
        """Render the template with the given variables.

        Raises:
            KeyError: If a required variable is missing.
        """
        return self.template.format(**kwargs)


# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = """You are an API documentation expert. You will receive:
1. A description of the user's scenario
2. A time-ordered list of HTTP request/response records captured from real traffic

Your task:
1. Analyse the call chain: what each API does and the order it is called in
2. Document every distinct endpoint:
   - path, method, description, tag groups
   - path/query/body parameters (name, type, required, meaning)
   - response fields (nested structures allowed)
   - example request and response based on the sanitized data
3. Describe the scenario call chain (which API is called first, why, and how data flows)
4. If the same API is called several times with different parameters, merge it into one
   endpoint and list every parameter combination
5. Output strictly the JSON schema shown, with no markdown code fence

Type inference rules:
- UUID-formatted string -> string (uuid)
- ISO 8601 time -> string (datetime)
- whole number -> integer
- decimal number -> number
- true/false -> boolean
- array -> array, with the element type noted

Keep field names exactly as they appear in the traffic.
Output JSON only, without a markdown code block."""


# =============================================================================
# User Prompt
# =============================================================================

OUTPUT_EXAMPLE = """## Output example (format reference only)
{
  "scenario": "List users",
  "call_chain": [
    {"seq": 1, "method": "GET", "path": "/api/v1/users", "description": "Fetch the user list", "depends_on": null}
  ],
  "endpoints": [
    {
      "method": "GET",
      "path": "/api/v1/users",
      "summary": "List users",
      "tags": ["Users"],
      "description": "Paginated query of the users in the system",
      "query_params": [{"name": "page", "type": "integer", "required": false, "description": "Page number"}],
      "responses": [
        {
          "status_code": 200,
          "content_type": "application/json",
          "description": "User list returned",
          "fields": [
            {"name": "total", "type": "integer", "required": true, "description": "Total count"},
            {"name": "items", "type": "array", "required": true, "description": "Users", "children": [
              {"name": "id", "type": "string (uuid)", "required": true, "description": "User ID"}
            ]}
          ]
        }
      ]
    }
  ]
}

Analyse the traffic above and produce the complete API documentation for this scenario."""

USER_TEMPLATE = PromptTemplate(
    """## Scenario
{scenario}

## API call records ({count} total, in time order)
{records}

{example}"""
)


def truncate_json_body(body: str) -> str | None:
    """Reduce a JSON object body to its short top-level scalar fields.

    Nested objects and arrays, and strings longer than
    MAX_FIELD_VALUE_CHARS, are replaced by TRUNCATED_PLACEHOLDER.

    Returns:
        The truncated JSON text, or None if the body is not a JSON object.
    """
    try:
        value = json.loads(body)
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None

    truncated: dict[str, Any] = {}
    for key, field_value in value.items():
        if isinstance(field_value, (dict, list)):
            truncated[key] = TRUNCATED_PLACEHOLDER
        elif isinstance(field_value, str) and len(field_value) > MAX_FIELD_VALUE_CHARS:
            truncated[key] = TRUNCATED_PLACEHOLDER
        else:
            truncated[key] = field_value
    return json.dumps(truncated, ensure_ascii=False)


def _dedup_by_path(records: Sequence[TrafficRecord]) -> list[TrafficRecord]:
    seen: set[str] = set()
    result = []
    for record in records:
        if record.path in seen:
            continue
        seen.add(record.path)
        result.append(record)
    return result


def _format_record(record: TrafficRecord) -> dict[str, Any]:
    body = record.request_body
    if len(body) > MAX_REQUEST_BODY_CHARS:
        body = truncate_json_body(body) or body

    formatted: dict[str, Any] = {
        "seq": record.seq,
        "method": record.method,
        "path": record.path,
        "query_params": record.query_params,
        "request_headers": record.request_headers,
        "request_body": body,
        "content_type": record.content_type,
        "status_code": record.status_code,
        "response_headers": record.response_headers,
        "response_body": record.response_body,
        "response_content_type": record.response_content_type,
        "call_count": record.call_count,
    }
    if record.call_count > 1:
        formatted["note"] = f"This API was called {record.call_count} times"
    return formatted


def build_user_prompt(scenario: str, records: Sequence[TrafficRecord]) -> str:
    """Build the user prompt for one batch of records.

    Args:
        scenario: User's description of what the capture shows.
        records: Records of the batch in processing order.

    Returns:
        Prompt containing the scenario, the records as indented JSON, and
        an output example.
    """
    selected = list(records)
    if len(selected) > DEDUP_RECORD_THRESHOLD:
        selected = _dedup_by_path(selected)

    formatted = [_format_record(record) for record in selected]
    return USER_TEMPLATE.render(
        scenario=scenario,
        count=len(formatted),
        records=json.dumps(formatted, indent=2, ensure_ascii=False),
        example=OUTPUT_EXAMPLE,
    )
