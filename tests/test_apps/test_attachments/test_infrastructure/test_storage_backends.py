"""Tests for attachment storage backends."""

from pathlib import Path
from unittest import mock

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.core.files.storage import FileSystemStorage

from server.apps.attachments.infrastructure.storage import (
    FileSystemBackend,
    S3Backend,
    StorageBackendMixin,
    get_backend,
)


class _PlainBackend(StorageBackendMixin, FileSystemStorage):
    """Backend without its own replace or move."""


@pytest.fixture
def staged_file(tmp_path) -> Path:
    """Staged file ready to be stored.

    Returns:
        Path to a small file.
    """
    path = tmp_path / 'staged.tmp'
    path.write_bytes(b'attachment data')
    return path


def test_store_writes_exact_key(backend, staged_file):
    """Test data lands under exactly the requested key."""
    key = backend.store(staged_file, 'public/docs/0000/0001/a.txt')

    assert key == 'public/docs/0000/0001/a.txt'
    assert backend.exists(key)


def test_store_replaces_existing(backend, staged_file, tmp_path):
    """Test storing twice under one key overwrites instead of renaming."""
    backend.store(staged_file, 'docs/a.txt')
    replacement = tmp_path / 'replacement.tmp'
    replacement.write_bytes(b'new data')

    key = backend.store(replacement, 'docs/a.txt')

    assert key == 'docs/a.txt'
    with backend.retrieve(key) as stream:
        assert stream.read() == b'new data'
    assert backend.listdir('docs')[1] == ['a.txt']


def test_store_missing_source_propagates(backend, tmp_path):
    """Test I/O errors reach the caller unchanged."""
    with pytest.raises(FileNotFoundError):
        backend.store(tmp_path / 'missing.tmp', 'docs/a.txt')


def test_store_missing_source_keeps_existing(backend, staged_file, tmp_path):
    """Test a missing source leaves the stored data in place."""
    backend.store(staged_file, 'docs/a.txt')

    with pytest.raises(FileNotFoundError):
        backend.store(tmp_path / 'missing.tmp', 'docs/a.txt')

    with backend.retrieve('docs/a.txt') as stream:
        assert stream.read() == b'attachment data'


def test_store_failed_write_keeps_existing(backend, staged_file, tmp_path):
    """Test a write error neither removes nor truncates the old data."""
    backend.store(staged_file, 'docs/a.txt')
    replacement = tmp_path / 'replacement.tmp'
    replacement.write_bytes(b'new data')

    with mock.patch.object(backend, 'save', side_effect=OSError('disk full')):
        with pytest.raises(OSError, match='disk full'):
            backend.store(replacement, 'docs/a.txt')

    with backend.retrieve('docs/a.txt') as stream:
        assert stream.read() == b'attachment data'
    assert backend.listdir('docs')[1] == ['a.txt']


def test_retrieve(backend, staged_file):
    """Test stored data can be read back."""
    backend.store(staged_file, 'docs/a.txt')

    with backend.retrieve('docs/a.txt') as stream:
        assert stream.read() == b'attachment data'


def test_delete(backend, staged_file):
    """Test deleting a stored attachment."""
    backend.store(staged_file, 'docs/a.txt')

    backend.delete('docs/a.txt')

    assert not backend.exists('docs/a.txt')


def test_move(backend, staged_file):
    """Test moving a stored attachment to a new key."""
    backend.store(staged_file, 'docs/0000/0001/a.txt')

    backend.move('docs/0000/0001/a.txt', 'docs/0000/0001/b.txt')

    assert not backend.exists('docs/0000/0001/a.txt')
    with backend.retrieve('docs/0000/0001/b.txt') as stream:
        assert stream.read() == b'attachment data'


def test_mixin_requires_backend_operations(attachment_dirs, staged_file):
    """Test backends must implement their own replace and move."""
    plain = _PlainBackend(location=attachment_dirs[1])

    with pytest.raises(NotImplementedError, match='replace'):
        plain.store(staged_file, 'docs/a.txt')
    with pytest.raises(NotImplementedError, match='move'):
        plain.move('docs/a.txt', 'docs/b.txt')
    assert not plain.exists('docs/a.txt')


def test_get_backend_from_settings(attachment_dirs):
    """Test backends are built from ATTACHMENT_STORAGES."""
    storage = get_backend('file_system')

    assert isinstance(storage, FileSystemBackend)
    assert Path(storage.location) == attachment_dirs[1]
    assert get_backend('file_system') is storage


def test_get_backend_unknown():
    """Test unknown backend names are a configuration error."""
    with pytest.raises(ImproperlyConfigured, match='Unknown attachment'):
        get_backend('floppy_disk')


@pytest.fixture
def s3_backend(mock_s3):
    """S3 backend talking to the mocked bucket.

    Returns:
        S3Backend instance.
    """
    return S3Backend(
        bucket_name='attachments',
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
        file_overwrite=False,
    )


def test_s3_store_and_retrieve(s3_backend, staged_file, mock_s3):
    """Test the S3 backend writes objects under the given key."""
    key = s3_backend.store(staged_file, 'public/docs/a.txt')

    body = mock_s3.Object('attachments', key).get()['Body'].read()
    assert body == b'attachment data'
    with s3_backend.retrieve(key) as stream:
        assert stream.read() == b'attachment data'


def test_s3_move_and_delete(s3_backend, staged_file, mock_s3):
    """Test server-side move and delete on S3."""
    s3_backend.store(staged_file, 'docs/a.txt')

    s3_backend.move('docs/a.txt', 'docs/b.txt')

    assert _bucket_keys(mock_s3) == ['docs/b.txt']

    s3_backend.delete('docs/b.txt')

    assert _bucket_keys(mock_s3) == []


def test_s3_store_replaces_existing(
    s3_backend,
    staged_file,
    tmp_path,
    mock_s3,
):
    """Test storing twice under one key keeps a single object."""
    s3_backend.store(staged_file, 'docs/a.txt')
    replacement = tmp_path / 'replacement.tmp'
    replacement.write_bytes(b'new data')

    key = s3_backend.store(replacement, 'docs/a.txt')

    assert key == 'docs/a.txt'
    assert _bucket_keys(mock_s3) == ['docs/a.txt']


def test_s3_store_missing_source_keeps_existing(
    s3_backend,
    staged_file,
    tmp_path,
    mock_s3,
):
    """Test a missing source leaves the stored object in place."""
    s3_backend.store(staged_file, 'docs/a.txt')

    with pytest.raises(FileNotFoundError):
        s3_backend.store(tmp_path / 'missing.tmp', 'docs/a.txt')

    body = mock_s3.Object('attachments', 'docs/a.txt').get()['Body'].read()
    assert body == b'attachment data'


def _bucket_keys(conn) -> list[str]:
    return sorted(obj.key for obj in conn.Bucket('attachments').objects.all())
