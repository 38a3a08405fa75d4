"""Main entry point for Django settings.

Settings are split into components and merged with django-split-settings.
Values that differ between environments are read with python-decouple.
"""

from split_settings.tools import include

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/attachments.py',
    'components/storages.py',
)

include(*_base_settings)
