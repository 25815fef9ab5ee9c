import json

import httpx
import pytest

from semchat.domain.embeddings import (
	EmbeddingClient,
	HuggingFaceProvider,
	NoInput,
	ProviderRejected,
	ProviderUnavailable,
	RetryPolicy,
	unwrap_vector,
)
from semchat.domain.embeddings.client import is_retryable, normalize_text

URL = "https://embeddings.test/models/mini/pipeline/feature-extraction"


def _client(handler, *, token: str | None = "hf_test", dimensions: int = 3, max_attempts: int = 3):
	http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	provider = HuggingFaceProvider(http, url=URL, api_token=token)
	delays: list[float] = []

	async def _sleep(delay: float) -> None:
		delays.append(delay)

	policy = RetryPolicy(max_attempts=max_attempts, backoff=lambda attempt: 2.0 * (attempt + 1), retryable=is_retryable)
	return EmbeddingClient(provider, dimensions=dimensions, policy=policy, sleep=_sleep), delays


def test_unwrap_vector_peels_batch_of_one_nesting():
	assert unwrap_vector([0.1, 0.2]) == [0.1, 0.2]
	assert unwrap_vector([[0.1, 0.2]]) == [0.1, 0.2]
	assert unwrap_vector([[[1, 2, 3]]]) == [1.0, 2.0, 3.0]


@pytest.mark.parametrize("payload", [[], [[]], {"error": "x"}, ["a", "b"], [True, 1.0], None])
def test_unwrap_vector_rejects_malformed_shapes(payload):
	with pytest.raises(ProviderRejected):
		unwrap_vector(payload)


@pytest.mark.parametrize("payload", [[[0.1], [0.2]], [[0.1, 0.2], [0.3, 0.4]], [[[0.1, 0.2], [0.3, 0.4]]]])
def test_unwrap_vector_rejects_multi_row_responses(payload):
	with pytest.raises(ProviderRejected):
		unwrap_vector(payload)


def test_normalize_text_collapses_newlines():
	assert normalize_text("  hello\nworld\r\nagain ") == "hello world again"
	assert normalize_text(None) == ""


@pytest.mark.asyncio
async def test_embed_sends_normalised_text_and_auth_header():
	seen = {}

	def handler(request: httpx.Request) -> httpx.Response:
		seen["auth"] = request.headers.get("authorization")
		seen["body"] = request.content.decode()
		return httpx.Response(200, json=[[0.1, 0.2, 0.3]])

	client, _ = _client(handler)
	vector = await client.embed("hello\nthere")

	assert vector == [0.1, 0.2, 0.3]
	assert seen["auth"] == "Bearer hf_test"
	assert json.loads(seen["body"]) == {"inputs": "hello there"}


@pytest.mark.asyncio
async def test_whitespace_input_never_reaches_provider():
	calls = []

	def handler(request: httpx.Request) -> httpx.Response:
		calls.append(request)
		return httpx.Response(200, json=[0.0, 0.0, 0.0])

	client, _ = _client(handler)
	with pytest.raises(NoInput):
		await client.embed(" \n\t ")
	assert calls == []


@pytest.mark.asyncio
async def test_rate_limit_is_retried_until_success():
	responses = [
		httpx.Response(429, json={"error": "Rate limit reached"}),
		httpx.Response(503, json={"error": "Model is overloaded"}),
		httpx.Response(200, json=[1.0, 0.0, 0.0]),
	]

	def handler(request: httpx.Request) -> httpx.Response:
		return responses.pop(0)

	client, delays = _client(handler)
	assert await client.embed("hi") == [1.0, 0.0, 0.0]
	assert delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_unavailable():
	calls = []

	def handler(request: httpx.Request) -> httpx.Response:
		calls.append(request)
		return httpx.Response(502, text="Bad Gateway")

	client, delays = _client(handler)
	with pytest.raises(ProviderUnavailable):
		await client.embed("hi")
	assert len(calls) == 3
	assert len(delays) == 2


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
	calls = []

	def handler(request: httpx.Request) -> httpx.Response:
		calls.append(request)
		return httpx.Response(400, json={"error": "bad inputs"})

	client, delays = _client(handler)
	with pytest.raises(ProviderRejected):
		await client.embed("hi")
	assert len(calls) == 1
	assert delays == []


@pytest.mark.asyncio
async def test_missing_token_is_rejected_without_request():
	def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
		raise AssertionError("provider called without token")

	client, _ = _client(handler, token=None)
	with pytest.raises(ProviderRejected):
		await client.embed("hi")


@pytest.mark.asyncio
async def test_wrong_dimensionality_is_rejected():
	client, _ = _client(lambda request: httpx.Response(200, json=[0.1, 0.2]))
	with pytest.raises(ProviderRejected):
		await client.embed("hi")


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
	attempts = []

	def handler(request: httpx.Request) -> httpx.Response:
		attempts.append(request)
		if len(attempts) == 1:
			raise httpx.ConnectError("refused", request=request)
		return httpx.Response(200, json=[0.5, 0.5, 0.5])

	client, delays = _client(handler)
	assert await client.embed("hi") == [0.5, 0.5, 0.5]
	assert len(attempts) == 2


@pytest.mark.asyncio
async def test_try_embed_absorbs_failures():
	client, _ = _client(lambda request: httpx.Response(503, text="down"), max_attempts=1)
	assert await client.try_embed("hi") is None
	assert await client.try_embed("") is None
