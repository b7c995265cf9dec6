from __future__ import annotations

import base64
import binascii
from typing import Any

from app.ai.types import ResumeAIError
from app.parsing.parse import parse_document_bytes, source_type_for_mime

IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}
MAX_PROMPT_CHARS = 24000


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into its MIME type and raw bytes."""
    if not data_uri or not data_uri.startswith("data:") or "," not in data_uri:
        raise ResumeAIError("Resume data is not a valid data URI.", code="invalid_document")
    header, payload = data_uri[5:].split(",", 1)
    parts = [p.strip() for p in header.split(";") if p.strip()]
    if "base64" not in parts[1:]:
        raise ResumeAIError("Resume data URI must be base64 encoded.", code="invalid_document")
    mime_type = parts[0].lower() if parts else "application/octet-stream"
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ResumeAIError(f"Resume data could not be decoded: {exc}", code="invalid_document") from exc
    return mime_type, content


def encode_data_uri(mime_type: str, content: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def resume_content_parts(data_uri: str, *, preface: str = "Resume:") -> list[dict[str, Any]]:
    """Chat content parts carrying the resume: text for documents, an image part for images."""
    mime_type, content = decode_data_uri(data_uri)
    if mime_type in IMAGE_MIME_TYPES:
        return [
            {"type": "text", "text": preface},
            {"type": "image_url", "image_url": {"url": data_uri}},
        ]

    source_type = source_type_for_mime(mime_type)
    if source_type is None:
        raise ResumeAIError(f"Unsupported resume type '{mime_type}'.", code="invalid_document")
    parsed = parse_document_bytes(content, source_type)
    text = parsed.text.strip()
    if not text:
        detail = "; ".join(parsed.parsing_warnings) or "document is empty"
        raise ResumeAIError(f"No readable text in resume ({detail}).", code="invalid_document")
    return [{"type": "text", "text": f"{preface}\n{text[:MAX_PROMPT_CHARS]}"}]
