"""Django app configuration for attachments app."""

import logging
from pathlib import Path
from typing import override

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class AttachmentsConfig(AppConfig):
    """Configuration for attachments app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.attachments'
    verbose_name = 'Attachments'

    @override
    def ready(self) -> None:
        """Make sure the staging directory exists."""
        tempfile_path = Path(settings.ATTACHMENT_TEMPFILE_PATH)
        if not tempfile_path.is_dir():
            logger.info('Creating attachment temp dir: %s', tempfile_path)
            tempfile_path.mkdir(parents=True, exist_ok=True)
