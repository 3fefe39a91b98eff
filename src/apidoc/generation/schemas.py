"""Schemas for the API documentation produced by the LLM."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator


class DocumentParseError(Exception):
    """Raised when LLM output is not a valid GeneratedDocument."""

    pass


class DocumentModel(BaseModel):
    """Base for document parts.

    A JSON null counts as an absent field, so the field default applies. A
    null list item decodes to an empty model.
    """

    @model_validator(mode="before")
    @classmethod
    def _null_means_default(cls, data: Any) -> Any:
        if data is None:
            return {}
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Param(DocumentModel):
    """A path, query, body, or response field, nested for objects and arrays."""

    name: str = Field("", description="Field name as it appears on the wire")
    type: str = Field("", description="Inferred type, e.g. 'string (uuid)'")
    required: bool = Field(False, description="Whether the field was always present")
    description: str = Field("", description="Meaning of the field")
    children: list[Param] = Field(default_factory=list, description="Nested fields")


class BodySchema(DocumentModel):
    """Request body description."""

    content_type: str = ""
    fields: list[Param] = Field(default_factory=list)


class ResponseSpec(DocumentModel):
    """One documented response of an endpoint."""

    status_code: int = 0
    content_type: str = ""
    description: str = ""
    fields: list[Param] = Field(default_factory=list)


class Example(DocumentModel):
    """Example request and response, taken from sanitized traffic."""

    request: str = ""
    response: str = ""


class Endpoint(DocumentModel):
    """Documentation for one method + path pair."""

    method: str = ""
    path: str = ""
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    path_params: list[Param] = Field(default_factory=list)
    query_params: list[Param] = Field(default_factory=list)
    request_body: Optional[BodySchema] = None
    responses: list[ResponseSpec] = Field(default_factory=list)
    example: Optional[Example] = None

    @property
    def identity(self) -> str:
        """Merge identity: uppercase method plus exact path."""
        return f"{self.method.upper()} {self.path}"


class ChainStep(DocumentModel):
    """One step of the scenario's call chain."""

    seq: int = 0
    method: str = ""
    path: str = ""
    description: str = ""
    depends_on: Optional[int] = None


class GeneratedDocument(DocumentModel):
    """API documentation for one scenario."""

    scenario: str = ""
    call_chain: list[ChainStep] = Field(default_factory=list)
    endpoints: list[Endpoint] = Field(default_factory=list)


def parse_document(text: str) -> GeneratedDocument:
    """Decode LLM output text into a GeneratedDocument.

    Args:
        text: JSON text, already stripped of any markdown fence.

    Returns:
        The decoded document.

    Raises:
        DocumentParseError: If the text is empty, not JSON, or does not
            match the document shape.
    """
    if not text.strip():
        raise DocumentParseError("empty document output")
    try:
        return GeneratedDocument.model_validate_json(text)
    except ValidationError as e:
        raise DocumentParseError(f"invalid document output: {e}") from e
