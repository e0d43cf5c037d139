"""SQLite-backed storage engine for conversations and their messages.

Each operation runs in its own session and transaction. Reads take the
conversation id as an explicit argument and never depend on state left
over from a previous call.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator, Optional, Sequence

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from chatstore.core.database import create_store_engine, init_db, uses_shared_connection
from chatstore.core.errors import ChatStoreError, ConflictError, NotFoundError, StorageError, ValidationError
from chatstore.core.ids import as_utc, derive_title, not_before, utcnow
from chatstore.models.conversation import (
    ChatMessage,
    Conversation,
    ConversationRead,
    MessageRead,
    MessageRole,
)

logger = logging.getLogger(__name__)


class StorageEngine:
    def __init__(
        self,
        url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        title_max_length: int = 50,
    ) -> None:
        self.engine = engine if engine is not None else create_store_engine(url)
        self.title_max_length = title_max_length
        self._write_lock = threading.RLock()
        self._shared_connection = uses_shared_connection(self.engine)

    @contextmanager
    def _transaction(self, write: bool = False) -> Iterator[Session]:
        """Open a session, commit on success for writes, roll back on any error."""
        # A single shared connection cannot serve overlapping readers either
        guard = self._write_lock if write or self._shared_connection else nullcontext()
        with guard, Session(self.engine, expire_on_commit=False) as session:
            try:
                yield session
                if write:
                    session.commit()
            except ChatStoreError:
                session.rollback()
                raise
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Storage operation failed")
                raise StorageError(str(exc)) from exc

    def create_schema(self) -> None:
        try:
            init_db(self.engine)
        except SQLAlchemyError as exc:
            logger.exception("Could not create schema")
            raise StorageError(str(exc)) from exc

    def close(self) -> None:
        self.engine.dispose()

    # Conversations

    def put_conversation(self, conversation: Conversation, *, create_only: bool = True) -> ConversationRead:
        with self._transaction(write=True) as session:
            existing = session.get(Conversation, conversation.id)
            if existing is None:
                # The count is derived from appends, never taken from the caller
                conversation.message_count = 0
                session.add(conversation)
                row = conversation
            elif create_only:
                raise ConflictError(conversation.id)
            else:
                existing.title = conversation.title
                existing.updated_at = not_before(conversation.updated_at, existing.updated_at)
                session.add(existing)
                row = existing
        logger.debug(f"Stored conversation {row.id}")
        return ConversationRead.from_row(row)

    def get_conversation(self, conversation_id: str) -> ConversationRead:
        with self._transaction() as session:
            row = session.get(Conversation, conversation_id)
            if row is None:
                raise NotFoundError(conversation_id)
            return ConversationRead.from_row(row)

    def list_conversations(self) -> list[ConversationRead]:
        """All conversations, most recently updated first, counts taken in the same query."""
        counts = (
            select(ChatMessage.conversation_id, func.count(ChatMessage.id).label("total"))
            .group_by(ChatMessage.conversation_id)
            .subquery()
        )
        stmt = (
            select(Conversation, func.coalesce(counts.c.total, 0))
            .outerjoin(counts, col(Conversation.id) == counts.c.conversation_id)
            .order_by(col(Conversation.updated_at).desc(), col(Conversation.id))
        )
        with self._transaction() as session:
            rows = session.exec(stmt).all()
            return [ConversationRead.from_row(row, message_count=total) for row, total in rows]

    def update_title(self, conversation_id: str, title: Optional[str]) -> ConversationRead:
        with self._transaction(write=True) as session:
            row = session.get(Conversation, conversation_id)
            if row is None:
                raise NotFoundError(conversation_id)
            row.title = title
            row.updated_at = not_before(utcnow(), row.updated_at)
            session.add(row)
        return ConversationRead.from_row(row)

    def delete_conversation(self, conversation_id: str) -> None:
        with self._transaction(write=True) as session:
            row = session.get(Conversation, conversation_id)
            if row is None:
                raise NotFoundError(conversation_id)
            connection = session.connection()
            connection.execute(delete(ChatMessage).where(col(ChatMessage.conversation_id) == conversation_id))
            session.delete(row)
        logger.debug(f"Deleted conversation {conversation_id}")

    # Messages

    def append_message(self, message: ChatMessage) -> MessageRead:
        """Record a message and refresh its conversation's counters in one transaction."""
        with self._transaction(write=True) as session:
            conversation = session.get(Conversation, message.conversation_id)
            if conversation is None:
                raise NotFoundError(message.conversation_id)
            if session.get(ChatMessage, message.id) is not None:
                raise ConflictError(message.id)

            message.position = conversation.message_count
            message.created_at = not_before(message.created_at, conversation.updated_at)
            conversation.message_count += 1
            conversation.updated_at = message.created_at
            if not conversation.title and message.role == MessageRole.USER:
                conversation.title = derive_title(message.content, self.title_max_length)

            session.add(message)
            session.add(conversation)
        logger.debug(f"Appended message {message.id} to conversation {message.conversation_id}")
        return MessageRead.from_row(message)

    def get_messages(self, conversation_id: str, *, limit: Optional[int] = None) -> list[MessageRead]:
        """Messages whose conversation_id equals the argument, oldest first.

        With ``limit`` only the last ``limit`` messages are returned, still oldest first.
        Raises NotFoundError when the conversation itself does not exist.
        """
        if limit is not None and limit < 0:
            raise ValidationError(f"limit must not be negative, got {limit}")
        stmt = select(ChatMessage).where(ChatMessage.conversation_id == conversation_id)
        with self._transaction() as session:
            if limit is None:
                stmt = stmt.order_by(col(ChatMessage.created_at), col(ChatMessage.position))
                rows = list(session.exec(stmt).all())
            else:
                stmt = stmt.order_by(
                    col(ChatMessage.created_at).desc(), col(ChatMessage.position).desc()
                ).limit(limit)
                rows = list(reversed(session.exec(stmt).all()))

            if not rows and session.get(Conversation, conversation_id) is None:
                raise NotFoundError(conversation_id)
            return [MessageRead.from_row(row) for row in rows]

    # Whole store

    def clear_all(self) -> None:
        with self._transaction(write=True) as session:
            connection = session.connection()
            connection.execute(delete(ChatMessage))
            connection.execute(delete(Conversation))
        logger.debug("Cleared all conversations and messages")

    def dump(self) -> tuple[list[ConversationRead], list[MessageRead]]:
        """Snapshot of every record, in a stable order.

        Only messages of the conversations read are included, so the result
        always loads back even if another writer got in between the two queries.
        """
        with self._transaction(write=True) as session:
            conversations = session.exec(
                select(Conversation).order_by(col(Conversation.created_at), col(Conversation.id))
            ).all()
            known = {row.id for row in conversations}
            messages = session.exec(
                select(ChatMessage).order_by(
                    col(ChatMessage.conversation_id), col(ChatMessage.position)
                )
            ).all()
            return (
                [ConversationRead.from_row(row) for row in conversations],
                [MessageRead.from_row(row) for row in messages if row.conversation_id in known],
            )

    def load(self, conversations: Sequence[ConversationRead], messages: Sequence[MessageRead]) -> None:
        """Insert a batch of new conversations and their messages, all or nothing."""
        with self._transaction(write=True) as session:
            known: set[str] = set()
            for item in conversations:
                if item.id in known or session.get(Conversation, item.id) is not None:
                    raise ConflictError(item.id)
                known.add(item.id)
                session.add(
                    Conversation(
                        id=item.id,
                        title=item.title,
                        message_count=0,
                        created_at=item.created_at,
                        updated_at=item.created_at,
                    )
                )
            session.flush()

            seen: set[str] = set()
            rows: dict[str, Conversation] = {item.id: session.get(Conversation, item.id) for item in conversations}
            for item in sorted(messages, key=lambda m: as_utc(m.created_at)):
                if item.conversation_id not in known:
                    raise NotFoundError(item.conversation_id)
                if item.id in seen or session.get(ChatMessage, item.id) is not None:
                    raise ConflictError(item.id)
                seen.add(item.id)

                conversation = rows[item.conversation_id]
                created_at = not_before(item.created_at, conversation.updated_at)
                session.add(
                    ChatMessage(
                        id=item.id,
                        conversation_id=item.conversation_id,
                        role=item.role,
                        content=item.content,
                        position=conversation.message_count,
                        created_at=created_at,
                    )
                )
                conversation.message_count += 1
                conversation.updated_at = created_at

            for item in conversations:
                conversation = rows[item.id]
                conversation.updated_at = not_before(item.updated_at, conversation.updated_at)
                session.add(conversation)
        logger.debug(f"Loaded {len(conversations)} conversations and {len(messages)} messages")
