from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from zipfile import BadZipFile, ZipFile

from app.ai.documents import encode_data_uri
from app.parsing.parse import parse_document_bytes

logger = logging.getLogger(__name__)

EXTENSION_MIME_TYPES = {
    "txt": "text/plain",
    "md": "text/markdown",
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

PDF_MAGIC = b"%PDF-"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")


class UploadRejected(ValueError):
    def __init__(self, message: str, *, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class ResumeDocument:
    filename: str
    mime_type: str
    content: bytes
    text: str
    data_uri: str


def _safe_filename(filename: str | None) -> str:
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    return name[:255] or "resume.txt"


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _is_zip_payload(content: bytes) -> bool:
    return any(content.startswith(prefix) for prefix in ZIP_MAGICS)


def _zip_has_paths(content: bytes, prefixes: tuple[str, ...]) -> bool:
    try:
        with ZipFile(BytesIO(content)) as archive:
            names = archive.namelist()
    except BadZipFile:
        return False
    return any(any(name.startswith(prefix) for prefix in prefixes) for name in names)


def _is_probably_text_payload(content: bytes) -> bool:
    sample = content[:4096]
    if not sample or b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte character cut at the sample boundary is still text.
        if exc.start < len(sample) - 3:
            return False
    return True


def validate_upload_signature(*, filename: str, content: bytes) -> None:
    ext = _extension(filename)
    if ext == "doc":
        raise UploadRejected("Legacy .doc is not supported. Convert to .docx.")
    if ext == "pdf":
        if not content.startswith(PDF_MAGIC):
            raise UploadRejected("File signature does not match .pdf content.")
        return
    if ext == "docx":
        if not _is_zip_payload(content) or not _zip_has_paths(content, ("word/",)):
            raise UploadRejected("File signature does not match .docx content.")
        return
    if ext in {"txt", "md"}:
        if not _is_probably_text_payload(content):
            raise UploadRejected(f"File signature does not match .{ext} text content.")


def load_resume_document(
    *,
    filename: str | None,
    content: bytes,
    max_bytes: int,
) -> ResumeDocument:
    """Validate an uploaded resume and prepare the copies later steps need.

    Raises ``UploadRejected`` before any state is touched when the file is
    unsupported, empty, too large or does not match its extension.
    """
    name = _safe_filename(filename)
    ext = _extension(name)
    mime_type = EXTENSION_MIME_TYPES.get(ext)
    if mime_type is None:
        allowed = ", ".join(f".{e}" for e in EXTENSION_MIME_TYPES)
        raise UploadRejected(f"Invalid file type. Please upload one of: {allowed}.")
    if not content:
        raise UploadRejected("The uploaded file is empty.")
    if len(content) > max_bytes:
        raise UploadRejected(
            f"File too large. Maximum allowed size is {max_bytes // (1024 * 1024)} MB.",
            status_code=413,
        )
    validate_upload_signature(filename=name, content=content)

    parsed = parse_document_bytes(content, ext)
    for warning in parsed.parsing_warnings:
        logger.info("resume_upload_warning filename=%s warning=%s", name, warning)
    if not parsed.text.strip():
        raise UploadRejected("No readable text found in the uploaded resume.")

    return ResumeDocument(
        filename=name,
        mime_type=mime_type,
        content=content,
        text=parsed.text,
        data_uri=encode_data_uri(mime_type, content),
    )
