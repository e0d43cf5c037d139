"""Error taxonomy shared by the storage engine, the store and the API layer."""


class ChatStoreError(Exception):
    """Base class for all store errors."""


class NotFoundError(ChatStoreError):
    """Raised when a referenced conversation id does not exist."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id!r}")
        self.conversation_id = conversation_id


class ValidationError(ChatStoreError):
    """Raised for malformed input: empty content, unknown role, missing field."""


class ConflictError(ChatStoreError):
    """Raised when a create would overwrite an existing record."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Duplicate ID: {record_id!r}")
        self.record_id = record_id


class StorageError(ChatStoreError):
    """Raised when the database is unavailable or corrupted. Never retried."""
