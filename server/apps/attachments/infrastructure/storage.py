"""Storage backends for persisted attachments.

A backend is a Django storage extended with the three operations the
attachment lifecycle needs: ``store``, ``retrieve`` and ``delete``.
Backends are selected by name from ``settings.ATTACHMENT_STORAGES``.
"""

import functools
import logging
import secrets
from pathlib import Path
from typing import Any, final, override

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.files.base import File as DjangoFile
from django.core.files.move import file_move_safe
from django.core.files.storage import FileSystemStorage, Storage
from django.utils.module_loading import import_string
from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


class StorageBackendMixin(Storage):
    """Attachment operations on top of a Django storage.

    All failures are logged and re-raised unchanged. Nothing is retried.
    """

    def store(self, source: Path, key: str) -> str:
        """Write a staged file to storage under exactly ``key``.

        An existing object with the same key is replaced only once the
        new data has been written, so a failed store keeps the old data.

        Args:
            source: Path of the staged file.
            key: Destination storage key.

        Returns:
            Storage key the data was written to.

        Raises:
            Exception: If the write fails.
        """
        try:
            logger.info('Storing attachment: %s', key)
            with source.open('rb') as stream:
                saved_name = self.replace(key, DjangoFile(stream, name=key))
        except Exception:
            logger.exception('Failed to store attachment: %s', key)
            raise
        logger.info('Stored attachment: %s', saved_name)
        return saved_name

    def replace(self, key: str, content: DjangoFile) -> str:
        """Write ``content`` under ``key``, overwriting existing data."""
        raise NotImplementedError(
            'subclasses of StorageBackendMixin must provide replace()',
        )

    def retrieve(self, key: str) -> DjangoFile:
        """Open a stored attachment for binary reading.

        Args:
            key: Storage key.

        Returns:
            Open Django File. The caller closes it.
        """
        return self.open(key, 'rb')

    @override
    def delete(self, name: str) -> None:
        """Delete a stored attachment with logging.

        Args:
            name: Storage key of the attachment.

        Raises:
            Exception: If the delete fails.
        """
        try:
            logger.info('Deleting attachment from storage: %s', name)
            super().delete(name)
        except Exception:
            logger.exception('Failed to delete attachment: %s', name)
            raise
        logger.info('Deleted attachment: %s', name)

    def move(self, source: str, destination: str) -> None:
        """Move a stored attachment to a new key."""
        raise NotImplementedError(
            'subclasses of StorageBackendMixin must provide move()',
        )


@final
class FileSystemBackend(StorageBackendMixin, FileSystemStorage):
    """Keeps attachments on the local file system."""

    @override
    def replace(self, key: str, content: DjangoFile) -> str:
        """Write next to the target, then rename over it."""
        partial = self.save(f'{key}.{secrets.token_hex(4)}.part', content)
        try:
            file_move_safe(
                self.path(partial),
                self.path(key),
                allow_overwrite=True,
            )
        except Exception:
            self.delete(partial)
            raise
        return key

    @override
    def move(self, source: str, destination: str) -> None:
        """Rename the file on disk instead of copying it."""
        try:
            logger.info('Moving attachment: %s -> %s', source, destination)
            target = Path(self.path(destination))
            target.parent.mkdir(parents=True, exist_ok=True)
            file_move_safe(
                self.path(source),
                str(target),
                allow_overwrite=True,
            )
        except Exception:
            logger.exception('Move failed: %s -> %s', source, destination)
            raise


@final
class S3Backend(StorageBackendMixin, S3Storage):
    """Keeps attachments in S3-compatible object storage."""

    @override
    def replace(self, key: str, content: DjangoFile) -> str:
        """Upload directly to the key, S3 PUTs replace objects whole."""
        return self._save(key, content)

    @override
    def move(self, source: str, destination: str) -> None:
        """Move an object with a server-side copy.

        S3 has no native rename, so the object is copied and the
        source deleted afterwards.
        """
        try:
            logger.info('Moving attachment: %s -> %s', source, destination)
            copy_source = {
                'Bucket': self.bucket_name,
                'Key': source,
            }
            self.bucket.copy(copy_source, destination)
            self.delete(source)
        except Exception:
            logger.exception('Move failed: %s -> %s', source, destination)
            raise


@functools.cache
def get_backend(name: str) -> StorageBackendMixin:
    """Build the storage backend registered under ``name``.

    Backends are created once per name and reused.

    Args:
        name: Key of ``settings.ATTACHMENT_STORAGES``.

    Returns:
        Configured backend instance.

    Raises:
        ImproperlyConfigured: If no backend is registered under the name.
    """
    try:
        backend_config: dict[str, Any] = settings.ATTACHMENT_STORAGES[name]
    except KeyError as error:
        raise ImproperlyConfigured(
            f'Unknown attachment storage: {name!r}',
        ) from error

    backend_class = import_string(backend_config['BACKEND'])
    logger.debug('Creating attachment storage %s: %s', name, backend_class)
    return backend_class(**backend_config.get('OPTIONS', {}))
