"""Shared fixtures for attachments app tests."""

from unittest import mock

import boto3
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from moto import mock_aws

from server.apps.attachments.infrastructure.storage import (
    FileSystemBackend,
    get_backend,
)
from server.apps.attachments.options import AttachmentOptions


@pytest.fixture(autouse=True)
def attachment_dirs(settings, tmp_path):
    """Point temp and storage directories at a per-test location.

    Returns:
        Tuple of (tempfile dir, storage root).
    """
    tempfile_path = tmp_path / 'staging'
    storage_root = tmp_path / 'media'
    settings.ATTACHMENT_TEMPFILE_PATH = tempfile_path
    settings.ATTACHMENT_ROOT = storage_root
    settings.ATTACHMENT_STORAGES = {
        'file_system': {
            'BACKEND': (
                'server.apps.attachments.infrastructure.storage.'
                'FileSystemBackend'
            ),
            'OPTIONS': {'location': str(storage_root)},
        },
    }
    get_backend.cache_clear()
    yield tempfile_path, storage_root
    get_backend.cache_clear()


@pytest.fixture
def tempfile_path(attachment_dirs):
    """Staging directory used by the current test."""
    return attachment_dirs[0]


@pytest.fixture
def backend(attachment_dirs):
    """File system backend rooted in the test directory.

    Returns:
        FileSystemBackend instance.
    """
    return FileSystemBackend(location=str(attachment_dirs[1]))


@pytest.fixture
def spy_backend(backend):
    """Backend wrapped in a mock to count storage calls.

    Returns:
        Mock delegating to the real file system backend.
    """
    return mock.Mock(wraps=backend)


@pytest.fixture
def options():
    """Default constraint set for a ``documents`` model.

    Returns:
        AttachmentOptions with default size range and any content type.
    """
    return AttachmentOptions.build(namespace='documents')


@pytest.fixture
def sample_upload():
    """Uploaded PDF as Django hands it to a view.

    Returns:
        SimpleUploadedFile with test data.
    """
    return SimpleUploadedFile(
        'report.pdf',
        b'%PDF-1.4 test document',
        content_type='application/pdf',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with attachments bucket.

    Yields:
        boto3 S3 resource with attachments bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='attachments')
        yield conn
