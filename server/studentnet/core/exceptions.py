# StudentNetwork/server/studentnet/core/exceptions.py

from typing import Optional


class StudentNetError(Exception):
    """Base class for every error raised by the social-graph services."""
    pass


# --- Precondition failures ---
class NotFoundError(StudentNetError):
    """A referenced user, thread, connection, request or notification does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found.")


# --- Input validation (raised before any write) ---
class ValidationError(StudentNetError):
    pass


class EmptyMessageError(ValidationError):
    def __init__(self):
        super().__init__("Message text must not be empty.")


class MalformedThreadError(ValidationError):
    pass


class NotParticipantError(ValidationError):
    def __init__(self, user_id: str, thread_id: str):
        self.user_id = user_id
        self.thread_id = thread_id
        super().__init__(f"User '{user_id}' is not a participant of thread '{thread_id}'.")


class InvalidTransitionError(ValidationError):
    pass


# --- Store failures (propagated, never retried here) ---
class StoreError(StudentNetError):
    """The underlying document store rejected or failed a call."""

    def __init__(self, message: str, operation: Optional[str] = None, collection: Optional[str] = None):
        self.operation = operation
        self.collection = collection
        super().__init__(message)


class WriteError(StoreError):
    pass


class PartialBatchFailure(StudentNetError):
    """
    One failed item inside a best-effort loop (MessageService.mark_read).
    Collected into the result and logged, never raised to the caller.
    """

    def __init__(self, document_id: str, cause: StoreError):
        self.document_id = document_id
        self.cause = cause
        super().__init__(f"Update of '{document_id}' failed: {cause}")
