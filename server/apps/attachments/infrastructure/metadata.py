"""Metadata helpers for uploaded attachments."""

import mimetypes
import re
from typing import Final

OCTET_STREAM: Final = 'application/octet-stream'

# Everything up to the last slash or backslash, so Windows paths
# are handled on any platform
_PATH_COMPONENTS: Final = re.compile(r'^.*[\\/]')
_UNSAFE_CHARS: Final = re.compile(r'[^A-Za-z0-9.\-]')

_PARTITION_WIDTH: Final = 8
_PARTITION_CHUNK: Final = 4


def sanitize_filename(filename: str | None) -> str | None:
    """Make an uploaded filename safe to use in a storage key.

    Strips surrounding whitespace, drops any directory components and
    replaces every character that is not alphanumeric, dot or hyphen
    with an underscore.

    Args:
        filename: Filename as sent by the client.

    Returns:
        Sanitized filename, or None if no filename was given.
    """
    if filename is None:
        return None
    name = _PATH_COMPONENTS.sub('', filename.strip())
    return _UNSAFE_CHARS.sub('_', name)


def detect_mime_type(declared: str | None, filename: str | None) -> str:
    """Resolve the content type of an upload.

    Browsers send ``application/octet-stream`` when they do not know
    the type. In that case the type is guessed from the filename
    extension with :mod:`mimetypes`; otherwise the declared type wins.

    Args:
        declared: Content type sent with the upload.
        filename: Original filename.

    Returns:
        MIME type string. ``application/octet-stream`` if nothing
        better is known.
    """
    content_type = (declared or '').strip()
    if content_type and content_type != OCTET_STREAM:
        return content_type
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed is not None:
            return guessed
    return OCTET_STREAM


def partitioned_path(record_id: int) -> list[str]:
    """Split a record id into directory chunks.

    Keeps directories small: id 42 becomes ``['0000', '0042']``.

    Args:
        record_id: Primary key of the owning record.

    Returns:
        Path components for the id.
    """
    padded = f'{record_id:0{_PARTITION_WIDTH}d}'
    return [
        padded[index:index + _PARTITION_CHUNK]
        for index in range(0, len(padded), _PARTITION_CHUNK)
    ]


def build_storage_key(
    path_prefix: str,
    filename: str,
    record_id: int | None = None,
) -> str:
    """Build the storage key for an attachment.

    Args:
        path_prefix: Storage key namespace.
        filename: Sanitized filename.
        record_id: Optional owning record id.

    Returns:
        Key such as ``public/documents/0000/0042/report.pdf``.
    """
    parts = [path_prefix] if path_prefix else []
    if record_id is not None:
        parts.extend(partitioned_path(record_id))
    parts.append(filename)
    return '/'.join(parts)
