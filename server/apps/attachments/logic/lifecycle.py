"""Attachment lifecycle: staging, validation, persistence and removal.

An :class:`Attachment` is owned by a record and driven explicitly by
the owning code::

    attachment = Attachment(options, record_id=document.pk)
    attachment.assign(request.FILES['upload'])
    result = attachment.transition(Event.SAVE)
    if not result.ok:
        form.add_errors(result.errors)

States move ``unmodified -> staged -> validated -> persisted`` and
finally ``persisted -> deleted``. Staged data lives in temp files that
the attachment removes once they are no longer needed.
"""

import dataclasses
import enum
import logging
import weakref
from pathlib import Path
from types import TracebackType
from typing import Any, Final, Self, final

from django.core.exceptions import ValidationError
from django.utils.translation import gettext as _

from server.apps.attachments.exceptions import (
    AttachmentError,
    IllegalTransitionError,
)
from server.apps.attachments.infrastructure.metadata import (
    build_storage_key,
    sanitize_filename,
)
from server.apps.attachments.infrastructure.storage import (
    StorageBackendMixin,
    get_backend,
)
from server.apps.attachments.infrastructure.tempfiles import (
    StagedFile,
    remove_staged_files,
    stream_to_temp_file,
    write_to_temp_file,
)
from server.apps.attachments.logic.intake import Upload, normalize_upload
from server.apps.attachments.options import AttachmentOptions, is_image

_REQUIRED_FIELDS: Final = ('size', 'content_type', 'filename')

logger = logging.getLogger(__name__)


def _inclusion_error(value: object, allowed: str) -> str:
    return _('%(value)s is not included in the list: %(allowed)s') % {
        'value': value,
        'allowed': allowed,
    }


class AttachmentState(enum.StrEnum):
    """Where an attachment is in its lifecycle."""

    UNMODIFIED = 'unmodified'
    STAGED = 'staged'
    VALIDATED = 'validated'
    PERSISTED = 'persisted'
    DELETED = 'deleted'


class Event(enum.StrEnum):
    """Lifecycle events applied by the owning record."""

    VALIDATE = 'validate'
    SAVE = 'save'
    DESTROY = 'destroy'


_STAGED_STATES: Final = frozenset((
    AttachmentState.STAGED,
    AttachmentState.VALIDATED,
))


@final
@dataclasses.dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of a lifecycle event.

    Attributes:
        ok: False if validation blocked the event.
        state: State after the event.
        errors: Field name to error messages, empty when ``ok``.
        stored: True if data was written to storage.
    """

    ok: bool
    state: AttachmentState
    errors: dict[str, list[str]] = dataclasses.field(default_factory=dict)
    stored: bool = False


class Attachment:  # noqa: WPS214
    """File data attached to one record.

    Keeps the attachment metadata (``filename``, ``content_type``,
    ``size``, storage ``key``) and a most-recent-first list of staged
    temp files. The first staged file is the current version of the data.
    """

    def __init__(  # noqa: WPS211
        self,
        options: AttachmentOptions,
        backend: StorageBackendMixin | None = None,
        *,
        record_id: int | None = None,
        filename: str | None = None,
        content_type: str | None = None,
        size: int | None = None,
        key: str | None = None,
    ) -> None:
        """Create an attachment.

        Passing ``key`` rehydrates an attachment that is already in
        storage; it starts in the ``persisted`` state.

        Args:
            options: Constraint set of the owning model.
            backend: Storage backend, defaults to ``options.storage``.
            record_id: Primary key of the owning record.
            filename: Stored filename.
            content_type: Stored content type.
            size: Stored size in bytes.
            key: Storage key of persisted data.
        """
        self.options = options
        self.record_id = record_id
        self.size = size
        self.key = key
        self.filename = filename
        self.content_type = content_type
        self.state = (
            AttachmentState.PERSISTED if key else AttachmentState.UNMODIFIED
        )
        self._backend = backend
        self._temp_paths: list[StagedFile] = []
        self._temp_paths_loaded = False
        # Owned temp files go away with the instance at the latest
        self._finalizer = weakref.finalize(
            self,
            remove_staged_files,
            self._temp_paths,
        )

    def __repr__(self) -> str:
        return (
            f'<Attachment {self.filename!r} state={self.state} '
            f'key={self.key!r}>'
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def filename(self) -> str | None:
        return self._filename

    @filename.setter
    def filename(self, new_name: str | None) -> None:
        self._filename = sanitize_filename(new_name)

    @property
    def content_type(self) -> str | None:
        return self._content_type

    @content_type.setter
    def content_type(self, new_type: str | None) -> None:
        if new_type is not None:
            new_type = str(new_type).strip()
        self._content_type = new_type

    @property
    def backend(self) -> StorageBackendMixin:
        if self._backend is None:
            self._backend = get_backend(self.options.storage)
        return self._backend

    @property
    def is_image(self) -> bool:
        return is_image(self.content_type)

    @property
    def temp_paths(self) -> list[StagedFile]:
        """Staged files, most recent first.

        For a persisted attachment with nothing staged, the stored data
        is copied into a fresh temp file on first access.
        """
        if not self._temp_paths and not self._temp_paths_loaded:
            self._temp_paths_loaded = True
            if self.key and self.backend.exists(self.key):
                with self.backend.retrieve(self.key) as stream:
                    path = stream_to_temp_file(stream, self.filename)
                self._temp_paths.insert(0, StagedFile(path))
        return self._temp_paths

    @property
    def temp_path(self) -> Path | None:
        """Path of the current version of the data, if any."""
        staged = self.temp_paths
        return staged[0].path if staged else None

    @property
    def temp_data(self) -> bytes | None:
        """Read the current version of the data into memory."""
        path = self.temp_path
        if path is None or not path.is_file():
            return None
        return path.read_bytes()

    @property
    def save_attachment(self) -> bool:
        """True if the next save writes data to storage."""
        if self.state not in _STAGED_STATES:
            return False
        return bool(self._temp_paths) and self._temp_paths[0].path.is_file()

    def assign(self, file_data: Any) -> bool:
        """Accept upload input as the new attachment data.

        Empty input is ignored and leaves the attachment untouched.

        Args:
            file_data: Uploaded file object or upload mapping.

        Returns:
            True if the data was staged.

        Raises:
            AttachmentError: If the input cannot be read.
            IllegalTransitionError: If the attachment was deleted.
        """
        self._ensure_alive('assign')
        upload = normalize_upload(file_data)
        if upload is None:
            return False

        staged = self._stage_upload(upload)
        if not staged.path.is_file():
            raise AttachmentError(f'Upload data not found: {staged.path}')
        if staged.path.stat().st_size == 0:
            logger.debug('Ignoring empty upload data: %s', staged.path)
            remove_staged_files([staged])
            return False

        self.content_type = upload.content_type
        self.filename = upload.filename
        self._stage(staged)
        return True

    def set_temp_data(self, data: bytes | None) -> None:
        """Stage raw bytes as the new version of the data."""
        self._ensure_alive('set_temp_data')
        if data is None:
            return
        self._stage(StagedFile(write_to_temp_file(data, self.filename)))

    def storage_key(self) -> str:
        """Storage key the current filename maps to."""
        return build_storage_key(
            self.options.path_prefix,
            self.filename or 'attachment',
            self.record_id,
        )

    def validate(self) -> dict[str, list[str]]:
        """Check the attachment against its constraint set.

        Refreshes ``size`` from the staged data first.

        Returns:
            Field name to error messages. Empty if valid.
        """
        self._refresh_size()
        errors: dict[str, list[str]] = {}

        for field_name in _REQUIRED_FIELDS:
            if getattr(self, field_name) in {None, ''}:
                errors.setdefault(field_name, []).append(
                    _('This field cannot be blank.'),
                )

        if self.size is not None and not self.options.allows_size(self.size):
            errors.setdefault('size', []).append(
                _inclusion_error(self.size, self.options.describe()['size']),
            )

        if self.content_type and not self.options.allows_content_type(
            self.content_type,
        ):
            errors.setdefault('content_type', []).append(
                _inclusion_error(
                    self.content_type,
                    ', '.join(self.options.content_type or ()),
                ),
            )
        return errors

    def full_clean(self) -> None:
        """Validate and raise instead of returning errors.

        Raises:
            ValidationError: With field-level errors.
        """
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

    def transition(self, event: Event) -> TransitionResult:
        """Apply a lifecycle event.

        Args:
            event: Event to apply.

        Returns:
            Result of the event. Validation failures come back as
            ``ok=False`` with field errors; backend errors propagate.

        Raises:
            IllegalTransitionError: If the attachment was deleted.
        """
        self._ensure_alive(event)
        handlers = {
            Event.VALIDATE: self._on_validate,
            Event.SAVE: self._on_save,
            Event.DESTROY: self._on_destroy,
        }
        return handlers[Event(event)]()

    def close(self) -> None:
        """Remove staged temp files owned by this attachment."""
        remove_staged_files(self._temp_paths)
        self._temp_paths.clear()
        self._temp_paths_loaded = False

    def _on_validate(self) -> TransitionResult:
        errors = self.validate()
        if errors:
            logger.warning(
                'Attachment %s failed validation: %s (options: %s)',
                self.filename,
                errors,
                self.options.describe(),
            )
            if self.state is AttachmentState.VALIDATED:
                self.state = AttachmentState.STAGED
            return TransitionResult(ok=False, state=self.state, errors=errors)

        if self.save_attachment:
            self.state = AttachmentState.VALIDATED
        return TransitionResult(ok=True, state=self.state)

    def _on_save(self) -> TransitionResult:
        if self.record_id is None:
            raise AttachmentError(
                f'Attachment {self.filename!r} has no record id to save under',
            )
        # Fields may have changed since an earlier VALIDATE
        validated = self._on_validate()
        if not validated.ok:
            return validated

        stored = False
        new_key = self.storage_key()
        if self.save_attachment:
            new_key = self.backend.store(self.temp_path, new_key)
            if self.key and self.key != new_key:
                self.backend.delete(self.key)
            stored = True
            self.close()
        elif self.key and self.key != new_key:
            self.backend.move(self.key, new_key)
        else:
            new_key = self.key

        self.key = new_key
        self.state = AttachmentState.PERSISTED
        logger.info('Attachment saved: %s (stored: %s)', self.key, stored)
        return TransitionResult(ok=True, state=self.state, stored=stored)

    def _on_destroy(self) -> TransitionResult:
        self.close()
        if self.key:
            self.backend.delete(self.key)
        self.state = AttachmentState.DELETED
        logger.info('Attachment destroyed: %s', self.key)
        return TransitionResult(ok=True, state=self.state)

    def _stage_upload(self, upload: Upload) -> StagedFile:
        if upload.path is not None:
            return StagedFile(upload.path, owned=False)
        return StagedFile(stream_to_temp_file(upload.stream, upload.filename))

    def _stage(self, staged: StagedFile) -> None:
        self._temp_paths.insert(0, staged)
        self.state = AttachmentState.STAGED
        self._refresh_size()
        logger.debug('Staged attachment data: %s', staged.path)

    def _refresh_size(self) -> None:
        if self.save_attachment:
            self.size = self._temp_paths[0].path.stat().st_size

    def _ensure_alive(self, action: str) -> None:
        if self.state is AttachmentState.DELETED:
            raise IllegalTransitionError(action, self.state)
