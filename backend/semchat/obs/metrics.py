"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"semchat_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"semchat_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0),
)

SOCKET_CLIENTS = Gauge(
	"semchat_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"semchat_socketio_events_total",
	"Socket.IO events handled per namespace",
	["namespace", "event"],
)

PRESENCE_ONLINE = Gauge(
	"semchat_presence_online_users",
	"Authenticated users with a bound live connection",
)

CHAT_SEND = Counter(
	"semchat_chat_messages_sent_total",
	"Chat messages persisted",
	["vector"],
)

CHAT_PUSHED = Counter(
	"semchat_chat_messages_pushed_total",
	"new_message events pushed to a live recipient connection",
)

EMBEDDING_REQUESTS = Counter(
	"semchat_embedding_requests_total",
	"Embedding calls by final outcome",
	["outcome"],
)

EMBEDDING_RETRIES = Counter(
	"semchat_embedding_retries_total",
	"Embedding provider attempts that were retried",
	["reason"],
)

EMBEDDING_LATENCY = Histogram(
	"semchat_embedding_duration_seconds",
	"End-to-end embedding latency including backoff",
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 40.0),
)

SEARCH_QUERIES = Counter(
	"semchat_search_queries_total",
	"Semantic search queries",
	["outcome"],
)

SEARCH_RESULTS = Histogram(
	"semchat_search_results",
	"Semantic search result sizes",
	buckets=(0, 1, 2, 5, 10, 20, 50),
)

BACKFILL_ROWS = Counter(
	"semchat_backfill_rows_total",
	"Rows visited by the embedding backfill job",
	["result"],
)


def observe_request(route: str, method: str, status: int, duration_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(duration_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def set_presence_online(count: int) -> None:
	PRESENCE_ONLINE.set(float(count))


def inc_chat_send(*, with_vector: bool) -> None:
	CHAT_SEND.labels(vector="present" if with_vector else "absent").inc()


def inc_chat_pushed() -> None:
	CHAT_PUSHED.inc()


def embedding_outcome(outcome: str, duration_seconds: float | None = None) -> None:
	EMBEDDING_REQUESTS.labels(outcome=outcome).inc()
	if duration_seconds is not None:
		EMBEDDING_LATENCY.observe(duration_seconds)


def embedding_retry(reason: str) -> None:
	EMBEDDING_RETRIES.labels(reason=reason).inc()


def search_query(outcome: str, result_count: int) -> None:
	SEARCH_QUERIES.labels(outcome=outcome).inc()
	SEARCH_RESULTS.observe(result_count)


def backfill_row(result: str) -> None:
	BACKFILL_ROWS.labels(result=result).inc()
