# SPDX-License-Identifier: Apache-2.0

"""
Verification document uploads.

Registration for gated roles accepts a document either as an http(s) URL,
stored as is, or as base64 data (optionally a data URL), which is uploaded
through a DocumentUploader to obtain a URL.
"""

import base64
import binascii
import os
import re
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from ..domain.errors import CollaboratorException, ServiceUnavailableException, ValidationException
from ..models.base import generate_object_id

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r'^data:(?P<content_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$', re.DOTALL)

MAX_DOCUMENT_BYTES = 5 * 1024 * 1024

EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class DocumentUploader(ABC):
    """Interface for document storage providers."""

    @abstractmethod
    def upload(self, content: bytes, content_type: str, folder: str) -> str:
        """
        Store a document.

        Returns:
            Public URL of the stored document

        Raises:
            CollaboratorException: If the document cannot be stored
        """


class LocalDocumentUploader(DocumentUploader):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: str = "var/uploads", base_url: str = "http://localhost:5000"):
        self.base_dir = Path(base_dir)
        self.base_url = base_url.rstrip("/")

    def _get_path(self, key: str) -> Path:
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def upload(self, content: bytes, content_type: str, folder: str) -> str:
        key = f"{folder}/{generate_object_id()}{EXTENSIONS.get(content_type, '.bin')}"
        path = self._get_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise CollaboratorException("uploader", f"Failed to store document: {e}")

        logger.info(f"Stored document {key}", extra={"size": len(content), "content_type": content_type})
        return f"{self.base_url}/files/local/{quote(key)}"


def resolve_verification_document(
    document: Optional[str],
    uploader: Optional[DocumentUploader],
    folder: str = "verification-documents",
    label: str = "Verification document"
) -> Optional[str]:
    """
    Turn a registration document reference into a stored URL.

    Args:
        document: http(s) URL, data URL or bare base64 payload
        uploader: Provider used for inline documents
        folder: Storage folder for uploads
        label: Name of the file in error messages

    Returns:
        Document URL, or None when no document was given

    Raises:
        ValidationException: If the payload is not valid base64 or too large
        ServiceUnavailableException: If the upload fails
    """
    if not document:
        return None
    if document.startswith(("http://", "https://")):
        return document

    content_type = "application/octet-stream"
    payload = document
    match = DATA_URL_PATTERN.match(document)
    if match:
        content_type = match.group("content_type")
        payload = match.group("data")

    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationException(
            f"{label} must be a URL or base64 encoded file",
            [{"field": "verificationDocument", "message": "Invalid document encoding", "type": "value_error"}]
        )
    if not content:
        raise ValidationException(f"{label} is empty")
    if len(content) > MAX_DOCUMENT_BYTES:
        raise ValidationException(f"{label} exceeds the 5 MB limit")

    if uploader is None:
        raise ServiceUnavailableException("Document uploads are not available")
    try:
        return uploader.upload(content, content_type, folder)
    except CollaboratorException as e:
        logger.error(f"Verification document upload failed: {e}")
        raise ServiceUnavailableException("Failed to upload verification document")


def create_document_uploader() -> DocumentUploader:
    """Create the document uploader from environment variables."""
    return LocalDocumentUploader(
        base_dir=os.getenv("UPLOAD_DIR", "var/uploads"),
        base_url=os.getenv("BASE_URL", "http://localhost:5000")
    )
