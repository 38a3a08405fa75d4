"""Temporary files used to stage attachment data.

Uploaded bytes live in a temp file under ATTACHMENT_TEMPFILE_PATH
until the attachment is saved. Files written here are owned by the
attachment that created them and must be removed by it.
"""

import dataclasses
import logging
import secrets
import shutil
import tempfile
import time
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO, Final, final

from django.conf import settings

_CHUNK_SIZE: Final = 64 * 1024
_SECONDS_PER_HOUR: Final = 3600

logger = logging.getLogger(__name__)


@final
@dataclasses.dataclass(frozen=True, slots=True)
class StagedFile:
    """One version of attachment data waiting to be persisted.

    Attributes:
        path: Location of the staged bytes.
        owned: True if the file was created here and must be removed
            by its attachment. Paths handed over by the upload layer
            are never removed.
    """

    path: Path
    owned: bool = True


def tempfile_dir() -> Path:
    """Return the staging directory, creating it if needed."""
    path = Path(settings.ATTACHMENT_TEMPFILE_PATH)
    path.mkdir(parents=True, exist_ok=True)
    return path


def random_tempfile_name(filename: str | None) -> str:
    """Generate a unique prefix for a temp file."""
    return f'{secrets.token_hex(8)}{filename or "attachment"}'


def write_to_temp_file(data: bytes, filename: str | None = None) -> Path:
    """Write bytes to a new temp file.

    Args:
        data: Bytes to stage.
        filename: Attachment filename used in the temp name.

    Returns:
        Path of the closed temp file.
    """
    with tempfile.NamedTemporaryFile(
        dir=tempfile_dir(),
        prefix=random_tempfile_name(filename),
        delete=False,
    ) as tmp:
        tmp.write(data)
    logger.debug('Staged %d bytes in %s', len(data), tmp.name)
    return Path(tmp.name)


def stream_to_temp_file(stream: BinaryIO, filename: str | None = None) -> Path:
    """Copy a readable stream to a new temp file in chunks.

    The stream is rewound first when it supports seeking.

    Args:
        stream: Binary file-like object.
        filename: Attachment filename used in the temp name.

    Returns:
        Path of the closed temp file.
    """
    seekable = getattr(stream, 'seekable', None)
    if seekable is not None and seekable():
        stream.seek(0)
    with tempfile.NamedTemporaryFile(
        dir=tempfile_dir(),
        prefix=random_tempfile_name(filename),
        delete=False,
    ) as tmp:
        shutil.copyfileobj(stream, tmp, _CHUNK_SIZE)
    logger.debug('Staged stream in %s', tmp.name)
    return Path(tmp.name)


def remove_staged_files(staged: Iterable[StagedFile]) -> None:
    """Unlink the owned files among ``staged``.

    Missing files are ignored, other OS errors are logged. Called from
    finalizers, so it must not raise.
    """
    for item in staged:
        if not item.owned:
            continue
        try:
            item.path.unlink(missing_ok=True)
        except OSError:
            logger.exception('Failed to remove temp file: %s', item.path)


def iter_stale_tempfiles(max_age_hours: int) -> Iterator[Path]:
    """Yield staged files older than ``max_age_hours``.

    Args:
        max_age_hours: Age after which a temp file counts as orphaned.

    Yields:
        Paths of stale files in the staging directory.
    """
    cutoff = time.time() - max_age_hours * _SECONDS_PER_HOUR
    for path in sorted(tempfile_dir().iterdir()):
        if path.is_file() and path.stat().st_mtime < cutoff:
            yield path
