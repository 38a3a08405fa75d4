"""Core Django settings."""

from typing import Final

from server.settings.components import config

SECRET_KEY: Final = config('DJANGO_SECRET_KEY', default='insecure-dev-key')

DEBUG: Final = config('DJANGO_DEBUG', cast=bool, default=False)

INSTALLED_APPS: Final = (
    'server.apps.attachments',
)

USE_I18N: Final = True
USE_TZ: Final = True
TIME_ZONE: Final = 'UTC'
LANGUAGE_CODE: Final = 'en-us'

DEFAULT_AUTO_FIELD: Final = 'django.db.models.BigAutoField'
