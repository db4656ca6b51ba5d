"""Tax-invoice document decoding and storage."""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path
from typing import Optional

from space_rental.domain.models import DocumentUpload
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.logger import get_logger, log_fields


logger = get_logger(__name__)

_DATA_URL = re.compile(r"data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,(?P<payload>.*)", re.DOTALL)
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\- ]+", re.UNICODE)


class UploadError(Exception):
    """Raised when a document cannot be decoded, is too large, or fails to store."""


class UploadTooLargeError(UploadError):
    """Raised when decoded content exceeds the configured cap."""


def _describe_limit(max_bytes: int) -> str:
    if max_bytes >= 1024 * 1024:
        return f"{max_bytes // (1024 * 1024)} MB"
    return f"{max_bytes} byte"


def decode_document(upload: DocumentUpload, max_bytes: int) -> tuple[bytes, str]:
    """Decode plain base64 or a ``data:`` URL and enforce the size cap."""
    payload = upload.content_base64.strip()
    mime_type = upload.mime_type.strip()
    match = _DATA_URL.fullmatch(payload)
    if match is not None:
        payload = match.group("payload")
        mime_type = mime_type or (match.group("mime") or "")
    payload = "".join(payload.split())

    # base64 inflates by 4/3; reject early before allocating the decoded buffer.
    if len(payload) * 3 // 4 > max_bytes + 3:
        raise UploadTooLargeError(f"Document exceeds the {_describe_limit(max_bytes)} limit")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UploadError("Document content is not valid base64") from exc
    if len(content) > max_bytes:
        raise UploadTooLargeError(f"Document exceeds the {_describe_limit(max_bytes)} limit")
    if not content:
        raise UploadError("Document is empty")
    return content, mime_type or "application/octet-stream"


def safe_filename(filename: str) -> str:
    name = Path(filename.replace("\\", "/")).name
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip(" .")
    return cleaned or "document"


class LocalDocumentStore:
    """Stores documents under the upload directory and returns public links."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._root = Path(self._settings.upload_dir)

    def store(
        self,
        content: bytes,
        mime_type: str,
        filename: str,
        reservation_number: str,
    ) -> str:
        target_name = safe_filename(filename)
        target_dir = self._root / reservation_number
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / target_name).write_bytes(content)
        except OSError as exc:
            raise UploadError("Document storage failed") from exc
        logger.info(
            "Document stored %s",
            log_fields(
                reservation=reservation_number,
                filename=target_name,
                mime_type=mime_type,
                size=len(content),
            ),
        )
        return f"{self._settings.upload_base_url}/{reservation_number}/{target_name}"

    def discard(self, reservation_number: str, filename: str) -> None:
        """Remove a stored document whose reservation was never saved."""
        target_dir = self._root / reservation_number
        try:
            (target_dir / safe_filename(filename)).unlink(missing_ok=True)
            if target_dir.is_dir() and not any(target_dir.iterdir()):
                target_dir.rmdir()
        except OSError:
            logger.warning(
                "Orphaned document could not be removed %s",
                log_fields(reservation=reservation_number, filename=filename),
                exc_info=True,
            )
            return
        logger.info("Orphaned document removed %s", log_fields(reservation=reservation_number))
