"""Attachment lifecycle settings."""

from pathlib import Path
from typing import Final

from server.settings.components import BASE_DIR, config

# Directory where uploads are staged before they reach storage
ATTACHMENT_TEMPFILE_PATH: Final = Path(
    config(
        'ATTACHMENT_TEMPFILE_PATH',
        default=str(BASE_DIR.joinpath('tmp', 'attachments')),
    ),
)

# Root directory for the file system backend
ATTACHMENT_ROOT: Final = Path(
    config('ATTACHMENT_ROOT', default=str(BASE_DIR.joinpath('media'))),
)

ATTACHMENT_DEFAULT_STORAGE: Final = config(
    'ATTACHMENT_DEFAULT_STORAGE',
    default='file_system',
)

# Inclusive size bounds used when a model does not declare its own
ATTACHMENT_DEFAULT_MIN_SIZE: Final = config(
    'ATTACHMENT_DEFAULT_MIN_SIZE',
    cast=int,
    default=1,
)
ATTACHMENT_DEFAULT_MAX_SIZE: Final = config(
    'ATTACHMENT_DEFAULT_MAX_SIZE',
    cast=int,
    default=1024 * 1024,
)

# Staged files older than this are considered orphaned
ATTACHMENT_TEMPFILE_MAX_AGE_HOURS: Final = config(
    'ATTACHMENT_TEMPFILE_MAX_AGE_HOURS',
    cast=int,
    default=24,
)
