"""
Field extraction

The extraction collaborator runs one field prompt against one document.
Only "fields mode" is offered: the supplied prompt is always the one used.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from field_prompt_tuner.domain.constants import NOT_PRESENT, OPTION_FIELD_TYPES
from field_prompt_tuner.domain.value_objects import ExtractionResult
from field_prompt_tuner.infrastructure.documents import TextDocumentStore
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient

logger = logging.getLogger(__name__)

# Characters of document text sent with each extraction request
MAX_DOCUMENT_CHARS = 30000

_VALUE_PREFIX_RE = re.compile(r"^(?:value|answer|result)\s*:\s*", re.IGNORECASE)
_NOT_PRESENT_RE = re.compile(r"^(?:not present|not found|n/?a|none|null)\.?$", re.IGNORECASE)


class DocumentExtractor(ABC):
    """Extracts a single field from a single document using a custom prompt"""

    @abstractmethod
    def extract(
        self,
        document_id: str,
        field_key: str,
        field_type: str,
        prompt: str,
        options: list[str] | None = None,
    ) -> ExtractionResult:
        pass


def build_extraction_prompt(
    document_text: str,
    field_name: str,
    field_type: str,
    prompt: str,
    options: list[str] | None = None,
) -> str:
    """Build the single-field extraction request"""
    parts = [
        "You are extracting one metadata field from the document below.",
        "",
        f"FIELD: {field_name} (type: {field_type})",
        f"INSTRUCTIONS: {prompt}",
    ]
    if options and field_type in OPTION_FIELD_TYPES:
        parts.append("ALLOWED VALUES: " + " | ".join(options))
        if field_type != "enum":
            parts.append("Several values may apply; separate them with ' | '.")
    parts.extend([
        "",
        "Respond with ONLY the extracted value on a single line, with no explanation.",
        f'If the value does not appear in the document, respond with "{NOT_PRESENT}".',
        "",
        "DOCUMENT:",
        document_text[:MAX_DOCUMENT_CHARS],
    ])
    return "\n".join(parts)


def clean_extracted_value(raw: str | None) -> str:
    """Reduce a model answer to the bare value"""
    if not raw:
        return NOT_PRESENT
    lines = [line.strip() for line in raw.strip().split("\n") if line.strip()]
    if not lines:
        return NOT_PRESENT
    value = _VALUE_PREFIX_RE.sub("", lines[0]).strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'`":
        value = value[1:-1].strip()
    if not value or _NOT_PRESENT_RE.match(value):
        return NOT_PRESENT
    return value


class LLMDocumentExtractor(DocumentExtractor):
    """Extractor that sends document text and the field prompt to a model client"""

    def __init__(self, client: ModelClient, store: TextDocumentStore, field_names: dict[str, str] | None = None):
        """
        Args:
            client: Model under test
            store: Source of document text
            field_names: Optional field key -> display name map used in the request
        """
        self.client = client
        self.store = store
        self.field_names = field_names or {}

    def extract(
        self,
        document_id: str,
        field_key: str,
        field_type: str,
        prompt: str,
        options: list[str] | None = None,
    ) -> ExtractionResult:
        """
        Extract one field value

        Raises:
            FileNotFoundError: If the document has no stored text
            Exception: Propagated from the model client after its retries
        """
        text = self.store.load_text(document_id)
        if text is None:
            raise FileNotFoundError(f"Document text not found: {document_id}")

        request = build_extraction_prompt(
            text,
            self.field_names.get(field_key, field_key),
            field_type,
            prompt,
            options,
        )
        response = self.client.generate(request)
        value = clean_extracted_value(response.output)
        logger.debug("Extracted %s from %s: %r", field_key, document_id, value)
        return ExtractionResult(value=value)
