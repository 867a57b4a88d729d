from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
from zipfile import BadZipFile, ZipFile

from fastapi import UploadFile

from app.core.scoring import get_scoring_value

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_ALLOWED_CONTENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
)
DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PDF_MAGIC = b"%PDF-"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

_SUFFIXES = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    DOCX_CONTENT_TYPE: ".docx",
    "text/plain": ".txt",
}
_CHUNK_SIZE = 64 * 1024


class UploadRejectedError(ValueError):
    def __init__(self, message: str, *, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def max_upload_bytes() -> int:
    try:
        return int(get_scoring_value("uploads.max_bytes", DEFAULT_MAX_UPLOAD_BYTES))
    except (RuntimeError, OSError, TypeError, ValueError):
        return DEFAULT_MAX_UPLOAD_BYTES


def allowed_content_types() -> tuple[str, ...]:
    try:
        configured = get_scoring_value("uploads.allowed_content_types")
    except (RuntimeError, OSError):
        return DEFAULT_ALLOWED_CONTENT_TYPES
    if not isinstance(configured, list) or not configured:
        return DEFAULT_ALLOWED_CONTENT_TYPES
    return tuple(str(item).strip().lower() for item in configured if str(item).strip())


def resolve_content_type(filename: str, declared: str | None) -> str:
    content_type = (declared or "").split(";", 1)[0].strip().lower()
    if content_type and content_type != "application/octet-stream":
        return content_type
    guessed, _ = mimetypes.guess_type(filename or "")
    return (guessed or content_type or "").lower()


def _is_probably_text(sample: bytes) -> bool:
    if not sample:
        return False
    if b"\x00" in sample:
        return False
    printable = sum(1 for byte in sample if byte in (9, 10, 13) or byte >= 32)
    return (printable / len(sample)) >= 0.75


def _docx_has_word_part(path: str) -> bool:
    try:
        with ZipFile(path) as archive:
            return any(name.startswith("word/") for name in archive.namelist())
    except (BadZipFile, OSError):
        return False


def validate_signature(content_type: str, head: bytes, path: str) -> None:
    if content_type == "application/pdf":
        if not head.startswith(PDF_MAGIC):
            raise UploadRejectedError("File signature does not match PDF content.")
    elif content_type == "application/msword":
        if not head.startswith(OLE2_MAGIC):
            raise UploadRejectedError("File signature does not match .doc content.")
    elif content_type == DOCX_CONTENT_TYPE:
        if not any(head.startswith(magic) for magic in ZIP_MAGICS) or not _docx_has_word_part(path):
            raise UploadRejectedError("File signature does not match .docx content.")
    elif content_type == "text/plain":
        if not _is_probably_text(head[:4096]):
            raise UploadRejectedError("File does not look like plain text.")


async def stage_upload(
    file: UploadFile,
    *,
    upload_dir: str,
    max_bytes: int | None = None,
    allowed_types: tuple[str, ...] | None = None,
) -> str:
    """Validate an uploaded resume and write it to a temp file. Returns the path."""
    limit = max_upload_bytes() if max_bytes is None else max_bytes
    allowed = allowed_content_types() if allowed_types is None else allowed_types
    filename = file.filename or "resume"

    content_type = resolve_content_type(filename, file.content_type)
    if content_type not in allowed:
        raise UploadRejectedError("Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.")

    os.makedirs(upload_dir, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        mode="wb",
        dir=upload_dir,
        prefix="resume-",
        suffix=_SUFFIXES.get(content_type, ""),
        delete=False,
    )
    path = handle.name
    head = b""
    total = 0
    try:
        with handle:
            while True:
                chunk = await file.read(_CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > limit:
                    raise UploadRejectedError(
                        f"File too large. Maximum allowed size is {limit // (1024 * 1024)} MB.",
                        status_code=413,
                    )
                if len(head) < 8192:
                    head += chunk[: 8192 - len(head)]
                handle.write(chunk)
        if total == 0:
            raise UploadRejectedError("No resume file uploaded")
        validate_signature(content_type, head, path)
    except BaseException:
        try:
            os.remove(path)
        except OSError as exc:
            logger.warning("upload_cleanup_failed path=%s: %s", path, exc)
        raise

    logger.info("upload_staged bytes=%d content_type=%s", total, content_type)
    return path
