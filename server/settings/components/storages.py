"""Storage backends available to attachments.

Each entry maps a backend selector (the ``storage`` attachment option)
to a storage class and its constructor options:
- ``file_system`` keeps files under ATTACHMENT_ROOT
- ``s3`` uses django-storages against any S3-compatible service
  (MinIO for local development, R2 or AWS in production)
"""

from typing import Any, Final

from server.settings.components import config
from server.settings.components.attachments import ATTACHMENT_ROOT

ATTACHMENT_STORAGES: Final[dict[str, dict[str, Any]]] = {
    'file_system': {
        'BACKEND': (
            'server.apps.attachments.infrastructure.storage.FileSystemBackend'
        ),
        'OPTIONS': {
            'location': str(ATTACHMENT_ROOT),
        },
    },
    's3': {
        'BACKEND': 'server.apps.attachments.infrastructure.storage.S3Backend',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='attachments',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default=None),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='auto',
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
        },
    },
}
