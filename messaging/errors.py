"""Errors raised by the messaging store and services."""


class MessagingError(RuntimeError):
    """Base class for messaging failures."""


class FetchError(MessagingError):
    """Raised when listing conversations or messages fails."""


class MutationError(MessagingError):
    """Raised when a write is rejected for a reason other than access control."""


class AccessDeniedError(MutationError):
    """Raised when the database refuses a write for lack of privileges."""


class ContentValidationError(MessagingError, ValueError):
    """Raised for empty or whitespace-only message content."""


class NotificationDispatchError(MessagingError):
    """Raised when an out-of-band trainer notification cannot be delivered."""


class ConversationDeletePartialFailure(MutationError):
    """Raised when only part of a conversation delete went through."""


class ConversationNotFoundError(MessagingError):
    """Raised when a conversation id does not match any row."""


class MessageNotFoundError(MessagingError):
    """Raised when a message id does not match any row."""


class MessageDeletedError(MutationError):
    """Raised when an edit targets a message that was soft-deleted meanwhile."""
