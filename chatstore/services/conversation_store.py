"""Public entry point for conversation history: creation, appends and scoped reads.

Every read takes the conversation id as an explicit argument. The store keeps
no notion of a current or last-queried conversation between calls.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from chatstore.core.config import Settings, settings as default_settings
from chatstore.core.errors import ConflictError, StorageError, ValidationError
from chatstore.core.ids import new_conversation_id, new_message_id, utcnow
from chatstore.core.storage import StorageEngine
from chatstore.models.conversation import (
    ChatMessage,
    Conversation,
    ConversationRead,
    MessageRead,
    MessageRole,
)

logger = logging.getLogger(__name__)


def _parse_role(role: Any) -> MessageRole:
    try:
        return MessageRole(role)
    except ValueError:
        allowed = ", ".join(r.value for r in MessageRole)
        raise ValidationError(f"Invalid role {role!r}; expected one of: {allowed}") from None


def _clean_title(title: Optional[str]) -> Optional[str]:
    if title is None:
        return None
    if not isinstance(title, str):
        raise ValidationError("Title must be a string")
    return title.strip() or None


class ConversationStore:
    def __init__(self, storage: Optional[StorageEngine] = None, *, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings
        self.storage = storage or StorageEngine(
            self.settings.sqlalchemy_url,
            title_max_length=self.settings.title_max_length,
        )
        self._initialized = False

    def __enter__(self) -> "ConversationStore":
        self.init()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def init(self) -> None:
        """Create the schema. Safe to call more than once."""
        if self._initialized:
            return
        try:
            self.storage.create_schema()
        except StorageError:
            self.storage.close()
            raise
        self._initialized = True
        logger.debug("Conversation store initialized")

    def close(self) -> None:
        self.storage.close()
        self._initialized = False

    # Conversations

    def create_conversation(self, title: Optional[str] = None) -> str:
        clean_title = _clean_title(title)
        attempts = max(1, self.settings.create_retries)
        for attempt in range(1, attempts + 1):
            now = utcnow()
            conversation = Conversation(
                id=new_conversation_id(),
                title=clean_title,
                created_at=now,
                updated_at=now,
            )
            try:
                self.storage.put_conversation(conversation, create_only=True)
            except ConflictError:
                logger.warning(f"Conversation id collision on attempt {attempt}: {conversation.id}")
                if attempt == attempts:
                    raise
                continue
            logger.debug(f"Created conversation {conversation.id}")
            return conversation.id

    def get_conversation(self, conversation_id: str) -> ConversationRead:
        return self.storage.get_conversation(conversation_id)

    def get_all_conversations(self) -> list[ConversationRead]:
        return self.storage.list_conversations()

    def rename_conversation(self, conversation_id: str, title: Optional[str]) -> ConversationRead:
        return self.storage.update_title(conversation_id, _clean_title(title))

    def delete_conversation(self, conversation_id: str) -> None:
        self.storage.delete_conversation(conversation_id)

    # Messages

    def add_message(self, conversation_id: str, role: Any, content: Any) -> str:
        if not isinstance(conversation_id, str) or not conversation_id:
            raise ValidationError("conversation_id is required")
        message_role = _parse_role(role)
        if not isinstance(content, str) or not content.strip():
            logger.warning(f"Rejected empty message for conversation {conversation_id}")
            raise ValidationError("Message content must not be empty")

        message = ChatMessage(
            id=new_message_id(),
            conversation_id=conversation_id,
            role=message_role,
            content=content,
            created_at=utcnow(),
        )
        stored = self.storage.append_message(message)
        return stored.id

    def get_messages_for_conversation(
        self, conversation_id: str, *, limit: Optional[int] = None
    ) -> list[MessageRead]:
        messages = self.storage.get_messages(conversation_id, limit=limit)
        stray = [m.id for m in messages if m.conversation_id != conversation_id]
        if stray:
            # Never hand another conversation's messages to the caller
            logger.error(f"Query for {conversation_id} returned foreign messages: {stray}")
            raise StorageError(f"Messages {stray} do not belong to conversation {conversation_id!r}")
        return messages

    # Whole store

    def clear(self) -> None:
        self.storage.clear_all()

    def export_data(self) -> str:
        conversations, messages = self.storage.dump()
        payload = {
            "conversations": [c.model_dump(mode="json") for c in conversations],
            "messages": [m.model_dump(mode="json") for m in messages],
            "exported_at": utcnow().isoformat(),
        }
        return json.dumps(payload, indent=2)

    def import_data(self, payload: str) -> None:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Import payload is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError("Import payload must be a JSON object")

        try:
            conversations = [ConversationRead.model_validate(c) for c in data.get("conversations") or []]
            messages = [MessageRead.model_validate(m) for m in data.get("messages") or []]
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed import record: {exc}") from exc

        if any(not m.content.strip() for m in messages):
            raise ValidationError("Imported messages must not be empty")
        self.storage.load(conversations, messages)
        logger.info(f"Imported {len(conversations)} conversations and {len(messages)} messages")


@lru_cache
def get_store() -> ConversationStore:
    """Process-wide store built from settings, initialized on first use."""
    store = ConversationStore()
    store.init()
    return store
