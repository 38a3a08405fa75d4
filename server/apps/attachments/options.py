"""Per-model attachment configuration."""

import dataclasses
from collections.abc import Iterable
from typing import Any, Final, final

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

# Shorthand accepted in ``content_type`` for all known image types
IMAGE_SHORTHAND: Final = 'image'

IMAGE_CONTENT_TYPES: Final = (
    'image/jpeg',
    'image/pjpeg',
    'image/jpg',
    'image/gif',
    'image/png',
    'image/x-png',
    'image/x-ms-bmp',
    'image/bmp',
    'image/x-bmp',
    'image/x-bitmap',
    'image/x-xbitmap',
    'image/x-win-bitmap',
    'image/x-windows-bmp',
    'image/ms-bmp',
    'application/bmp',
    'application/x-bmp',
    'application/x-win-bitmap',
    'application/preview',
    'image/jp_',
    'application/jpg',
    'application/x-jpg',
    'image/pipeg',
    'image/vnd.swiftview-jpeg',
    'application/png',
    'application/x-png',
    'image/gi_',
    'image/x-citrix-pjpeg',
)

_DEFAULT_NAMESPACE: Final = 'attachments'


def is_image(content_type: str | None) -> bool:
    """Return True if the content type is a recognized image type."""
    return content_type in IMAGE_CONTENT_TYPES


def _expand_content_types(
    content_type: str | Iterable[str] | None,
) -> tuple[str, ...] | None:
    if content_type is None:
        return None
    if isinstance(content_type, str):
        content_type = [content_type]

    expanded: list[str] = []
    for item in content_type:
        if item == IMAGE_SHORTHAND:
            expanded.extend(IMAGE_CONTENT_TYPES)
        else:
            expanded.append(item)

    if not expanded:
        raise ImproperlyConfigured(
            'content_type must list at least one type or be None',
        )
    # dict keeps order and drops duplicates
    return tuple(dict.fromkeys(expanded))


def _size_bounds(
    size: tuple[int, int] | range | None,
    min_size: int | None,
    max_size: int | None,
) -> tuple[int, int]:
    if size is not None:
        if isinstance(size, range):
            low, high = size.start, size.stop - 1
        else:
            low, high = size
    else:
        low = min_size
        if low is None:
            low = settings.ATTACHMENT_DEFAULT_MIN_SIZE
        high = max_size
        if high is None:
            high = settings.ATTACHMENT_DEFAULT_MAX_SIZE

    if low < 0 or high < low:
        raise ImproperlyConfigured(
            f'Invalid attachment size range: {low}..{high}',
        )
    return low, high


def _normalize_prefix(path_prefix: str | None, namespace: str) -> str:
    if path_prefix is None:
        path_prefix = f'public/{namespace}'
    return path_prefix.lstrip('/').rstrip('/')


@final
@dataclasses.dataclass(frozen=True, slots=True)
class AttachmentOptions:
    """Constraint set and storage settings for one kind of attachment.

    Built once per owning model with :meth:`build` and handed to every
    :class:`~server.apps.attachments.logic.lifecycle.Attachment` of that
    model. Nothing here is mutated after construction.

    Attributes:
        content_type: Allowed content types, or None to allow any.
        size: Inclusive ``(low, high)`` byte range.
        path_prefix: Storage key namespace, without leading slash.
        storage: Backend selector, a key of ``ATTACHMENT_STORAGES``.
        namespace: Name of the owning model.
    """

    content_type: tuple[str, ...] | None
    size: tuple[int, int]
    path_prefix: str
    storage: str
    namespace: str = _DEFAULT_NAMESPACE

    @classmethod
    def build(  # noqa: WPS211
        cls,
        *,
        content_type: str | Iterable[str] | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        size: tuple[int, int] | range | None = None,
        path_prefix: str | None = None,
        file_system_path: str | None = None,
        storage: str | None = None,
        namespace: str = _DEFAULT_NAMESPACE,
    ) -> 'AttachmentOptions':
        """Normalize user-facing options into a constraint set.

        ``size`` wins over ``min_size``/``max_size``. A missing bound
        falls back to ATTACHMENT_DEFAULT_MIN_SIZE or
        ATTACHMENT_DEFAULT_MAX_SIZE.

        Args:
            content_type: A type, ``'image'``, or a list of either.
            min_size: Smallest allowed size in bytes.
            max_size: Largest allowed size in bytes.
            size: Inclusive ``(low, high)`` pair or a ``range``.
            path_prefix: Storage key namespace.
            file_system_path: Alias for ``path_prefix``.
            storage: Backend selector.
            namespace: Owning model name used for the default prefix.

        Returns:
            Frozen AttachmentOptions.

        Raises:
            ImproperlyConfigured: If the options are inconsistent.
        """
        return cls(
            content_type=_expand_content_types(content_type),
            size=_size_bounds(size, min_size, max_size),
            path_prefix=_normalize_prefix(
                path_prefix or file_system_path,
                namespace,
            ),
            storage=storage or settings.ATTACHMENT_DEFAULT_STORAGE,
            namespace=namespace,
        )

    @property
    def min_size(self) -> int:
        return self.size[0]

    @property
    def max_size(self) -> int:
        return self.size[1]

    def allows_size(self, size: int) -> bool:
        low, high = self.size
        return low <= size <= high

    def allows_content_type(self, content_type: str | None) -> bool:
        if self.content_type is None:
            return True
        return content_type in self.content_type

    def describe(self) -> dict[str, Any]:
        """Return options in a form suitable for logs and error messages."""
        return {
            'content_type': self.content_type,
            'size': f'{self.min_size}..{self.max_size}',
            'path_prefix': self.path_prefix,
            'storage': self.storage,
        }
