"""Normalization of upload input.

Two shapes of input are accepted:

- an uploaded file object exposing ``content_type`` (Django's
  ``UploadedFile`` or anything duck-typed like it)
- a mapping with ``size``, ``content_type``, ``filename`` and
  ``tempfile`` keys

Both are reduced to an :class:`Upload` before they touch an attachment.
"""

import dataclasses
import io
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, final

from server.apps.attachments.exceptions import AttachmentError
from server.apps.attachments.infrastructure.metadata import (
    detect_mime_type,
    sanitize_filename,
)

logger = logging.getLogger(__name__)


@final
@dataclasses.dataclass(frozen=True, slots=True)
class Upload:
    """Upload input reduced to what an attachment needs.

    Exactly one of ``path`` and ``stream`` is set.

    Attributes:
        content_type: Resolved content type.
        filename: Sanitized filename.
        path: File on disk owned by the upload layer.
        stream: Readable binary stream with the data.
    """

    content_type: str
    filename: str | None
    path: Path | None = None
    stream: Any = None


def normalize_upload(file_data: Any) -> Upload | None:
    """Turn upload input into an :class:`Upload`.

    Args:
        file_data: Uploaded file object or mapping.

    Returns:
        Upload, or None when the input is empty.

    Raises:
        AttachmentError: If the data source cannot be read.
    """
    if file_data is None:
        return None
    if hasattr(file_data, 'content_type'):
        return _from_uploaded_file(file_data)
    if isinstance(file_data, Mapping):
        return _from_mapping(file_data)
    raise AttachmentError(
        f'Unsupported upload input: {type(file_data).__name__}',
    )


def _from_uploaded_file(file_data: Any) -> Upload | None:
    if getattr(file_data, 'size', None) == 0:
        logger.debug('Ignoring empty upload: %r', file_data)
        return None

    original = getattr(file_data, 'original_filename', None) or getattr(
        file_data,
        'name',
        None,
    )
    path, stream = _resolve_source(file_data)
    return Upload(
        content_type=detect_mime_type(file_data.content_type, original),
        filename=sanitize_filename(original),
        path=path,
        stream=stream,
    )


def _from_mapping(file_data: Mapping[str, Any]) -> Upload | None:
    if not file_data or file_data.get('size') == 0:
        logger.debug('Ignoring empty upload mapping')
        return None

    filename = file_data.get('filename')
    path, stream = _resolve_source(file_data.get('tempfile'))
    return Upload(
        content_type=detect_mime_type(file_data.get('content_type'), filename),
        filename=sanitize_filename(filename),
        path=path,
        stream=stream,
    )


def _resolve_source(source: Any) -> tuple[Path | None, Any]:
    """Find where the upload bytes live.

    Data already written to disk by the upload layer is referenced by
    path; in-memory data is returned as a stream to be staged.
    """
    if source is None:
        raise AttachmentError('Upload has no data')
    if isinstance(source, bytes):
        return None, io.BytesIO(source)
    if isinstance(source, (str, os.PathLike)):
        return Path(source), None
    if hasattr(source, 'temporary_file_path'):
        return Path(source.temporary_file_path()), None
    if hasattr(source, 'read'):
        return None, source
    raise AttachmentError(
        f'Unreadable upload data: {type(source).__name__}',
    )
