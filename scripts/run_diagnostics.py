"""Run the conversation isolation self check.

The check clears the database it runs against. By default it uses a fresh
in-memory database; pass --use-configured to run against the configured one.

Usage:
    python scripts/run_diagnostics.py [--use-configured]
"""

import logging
import sys

from chatstore.core.config import settings
from chatstore.core.storage import StorageEngine
from chatstore.services.conversation_store import ConversationStore
from chatstore.services.diagnostics import format_diagnostic_results, run_chat_diagnostics

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(levelname)-8s %(name)s: %(message)s",
)

if "--use-configured" in sys.argv[1:]:
    settings.database_file.parent.mkdir(parents=True, exist_ok=True)
    url = settings.sqlalchemy_url
else:
    url = "sqlite://"
print(f"Using database: {url}")

with ConversationStore(StorageEngine(url, title_max_length=settings.title_max_length)) as store:
    result = run_chat_diagnostics(store)

print(format_diagnostic_results(result))
raise SystemExit(0 if result.ok else 1)
