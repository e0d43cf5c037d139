"""End-to-end self check of the conversation store.

Runs the two-conversation scenario against a live store and reports each
step as passed or failed. The run clears the store first.
"""

import logging
import time
from dataclasses import dataclass, field

from chatstore.core.errors import ChatStoreError
from chatstore.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticResult:
    passed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed


def _add_pair(store: ConversationStore, conversation_id: str, label: str) -> None:
    store.add_message(conversation_id, "user", f"Message 1 in Conversation {label}")
    store.add_message(conversation_id, "assistant", f"Response 1 in Conversation {label}")


def _check_count(result: DiagnosticResult, store: ConversationStore, conversation_id: str, label: str) -> None:
    messages = store.get_messages_for_conversation(conversation_id)
    if len(messages) != 2:
        result.failed.append(f"Conv {label} messages - expected 2, got {len(messages)}")
    else:
        result.passed.append(f"Retrieve Conv {label} messages")


def run_chat_diagnostics(store: ConversationStore) -> DiagnosticResult:
    result = DiagnosticResult()
    started = time.monotonic()

    try:
        store.init()
        result.passed.append("DB Init")

        store.clear()
        result.passed.append("DB Clear")

        conv_a = store.create_conversation()
        result.passed.append("Create Conv A")

        _add_pair(store, conv_a, "A")
        result.passed.append("Add messages to Conv A")
        _check_count(result, store, conv_a, "A")

        conv_b = store.create_conversation()
        if conv_b == conv_a:
            result.failed.append("Conv B has same ID as Conv A!")
            raise ChatStoreError("Duplicate conversation IDs")
        result.passed.append("Create Conv B")

        _add_pair(store, conv_b, "B")
        result.passed.append("Add messages to Conv B")
        _check_count(result, store, conv_b, "B")

        conversations = store.get_all_conversations()
        if len(conversations) != 2:
            result.failed.append(f"All convs - expected 2, got {len(conversations)}")
        elif any(c.message_count != 2 for c in conversations):
            counts = {c.id: c.message_count for c in conversations}
            result.failed.append(f"All convs - expected 2 messages each, got {counts}")
        else:
            result.passed.append("List all conversations")

        a_messages = store.get_messages_for_conversation(conv_a)
        b_messages = store.get_messages_for_conversation(conv_b)
        a_ids = {m.id for m in a_messages}
        b_ids = {m.id for m in b_messages}
        if a_ids & b_ids or any(m.conversation_id != conv_a for m in a_messages):
            result.failed.append("Conv A has Conv B messages!")
        elif any(m.conversation_id != conv_b for m in b_messages):
            result.failed.append("Conv B has Conv A messages!")
        else:
            result.passed.append("Message isolation")

    except ChatStoreError as exc:
        logger.exception("Diagnostic run failed")
        result.failed.append(f"Error: {exc}")

    result.duration_ms = int((time.monotonic() - started) * 1000)
    return result


def format_diagnostic_results(result: DiagnosticResult) -> str:
    lines = ["=== CHAT DIAGNOSTICS RESULTS ===", f"Duration: {result.duration_ms}ms", ""]
    lines.append(f"Passed ({len(result.passed)}):")
    lines.extend(f"  [ok] {name}" for name in result.passed)
    if result.failed:
        lines.append("")
        lines.append(f"Failed ({len(result.failed)}):")
        lines.extend(f"  [FAIL] {name}" for name in result.failed)
    lines.append("================================")
    return "\n".join(lines)
