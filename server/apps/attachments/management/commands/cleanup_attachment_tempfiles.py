"""Management command to remove orphaned attachment temp files."""

import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.attachments.infrastructure.tempfiles import (
    iter_stale_tempfiles,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete staged files left behind by crashed processes."""

    help = 'Remove attachment temp files older than the configured age'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be removed without removing',
        )
        parser.add_argument(
            '--max-age-hours',
            type=int,
            default=None,
            help='Age in hours after which a temp file is orphaned',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        max_age_hours = options['max_age_hours']
        if max_age_hours is None:
            max_age_hours = settings.ATTACHMENT_TEMPFILE_MAX_AGE_HOURS

        self.stdout.write(
            f'Looking for temp files older than {max_age_hours} hours',
        )

        count = 0
        failed = 0

        for path in iter_stale_tempfiles(max_age_hours):
            if dry_run:
                self.stdout.write(f'Would remove: {path.name}')
                count += 1
                continue

            try:
                path.unlink()
            except OSError as exc:
                self.stderr.write(f'Failed to remove {path.name}: {exc}')
                logger.exception('Failed to remove temp file: %s', path)
                failed += 1
            else:
                count += 1
                logger.info('Removed orphaned temp file: %s', path)

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would remove {count} temp files'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Removed {count} temp files, {failed} failed',
                ),
            )
