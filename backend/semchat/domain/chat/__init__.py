"""Direct messaging: storage, semantic search and embedding backfill."""

from .backfill import BackfillJob, BackfillReport
from .models import Message, PendingEmbedding, ScoredMessage
from .repo import InMemoryMessageStore, MessageStore, PostgresMessageStore
from .search import SearchService
from .service import MessageService

__all__ = [
	"BackfillJob",
	"BackfillReport",
	"InMemoryMessageStore",
	"Message",
	"MessageService",
	"MessageStore",
	"PendingEmbedding",
	"PostgresMessageStore",
	"ScoredMessage",
	"SearchService",
]
