from __future__ import annotations

import hashlib
import zipfile
from io import BytesIO

from docx import Document
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .models import ParsedBlock, ParsedDoc

MIME_TO_SOURCE_TYPE = {
    "text/plain": "txt",
    "text/markdown": "md",
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}


def _compute_doc_id(text: str, content: bytes) -> str:
    seed = text.encode("utf-8", errors="ignore") if text.strip() else content
    return hashlib.sha256(seed).hexdigest()[:16]


def _parse_text(content: bytes) -> tuple[str, list[ParsedBlock], list[str]]:
    return content.decode("utf-8", errors="replace"), [], []


def _parse_pdf(content: bytes) -> tuple[str, list[ParsedBlock], list[str]]:
    warnings: list[str] = []
    blocks: list[ParsedBlock] = []

    try:
        reader = PdfReader(BytesIO(content))
        text_parts: list[str] = []
        for index, page in enumerate(reader.pages, start=1):
            page_text = (page.extract_text() or "").strip()
            if page_text:
                text_parts.append(page_text)
                blocks.append(ParsedBlock(page=index, text=page_text))
    except (PdfReadError, ValueError) as exc:
        warnings.append(f"PDF parsing failed: {exc}")
        return "", blocks, warnings

    if not text_parts:
        warnings.append("No extractable text found in PDF.")
    return "\n".join(text_parts), blocks, warnings


def _parse_docx(content: bytes) -> tuple[str, list[ParsedBlock], list[str]]:
    warnings: list[str] = []
    blocks: list[ParsedBlock] = []

    try:
        document = Document(BytesIO(content))
    except (zipfile.BadZipFile, KeyError, ValueError) as exc:
        warnings.append(f"DOCX parsing failed: {exc}")
        return "", blocks, warnings

    paragraphs = [p.text.strip() for p in document.paragraphs if p.text and p.text.strip()]
    for paragraph_text in paragraphs:
        blocks.append(ParsedBlock(page=None, text=paragraph_text))
    if not paragraphs:
        warnings.append("No extractable text found in DOCX.")
    return "\n".join(paragraphs), blocks, warnings


def parse_document_bytes(content: bytes, source_type: str) -> ParsedDoc:
    source_type = source_type.strip().lower()
    if source_type in {"txt", "md"}:
        text, blocks, warnings = _parse_text(content)
    elif source_type == "pdf":
        text, blocks, warnings = _parse_pdf(content)
    elif source_type == "docx":
        text, blocks, warnings = _parse_docx(content)
    else:
        raise NotImplementedError(
            f"Unsupported file type '{source_type}'. Supported types: txt, md, pdf, docx"
        )

    return ParsedDoc(
        doc_id=_compute_doc_id(text=text, content=content),
        source_type=source_type,
        text=text,
        blocks=blocks,
        parsing_warnings=warnings,
    )


def source_type_for_mime(mime_type: str) -> str | None:
    return MIME_TO_SOURCE_TYPE.get((mime_type or "").split(";")[0].strip().lower())
