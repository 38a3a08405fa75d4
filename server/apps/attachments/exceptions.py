"""Exceptions for attachments app."""


class AttachmentError(Exception):
    """Raised when attachment data cannot be processed.

    Covers unreadable upload input and lifecycle events that are not
    allowed in the attachment's current state. Not retried.
    """


class ThumbnailError(AttachmentError):
    """Raised when an image attachment cannot be processed."""


class IllegalTransitionError(AttachmentError):
    """Raised when a lifecycle event is not allowed in the current state."""

    def __init__(self, event: str, state: str) -> None:
        """Initialize IllegalTransitionError.

        Args:
            event: Name of the rejected event.
            state: State the attachment was in.
        """
        self.event = event
        self.state = state
        super().__init__(
            f'Cannot apply {event} to attachment in state {state}',
        )
