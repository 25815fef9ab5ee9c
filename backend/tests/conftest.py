import asyncio
import os
import sys
import zlib
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

# Cheap password hashing for the test run; read when semchat.settings is imported
os.environ.setdefault("PASSWORD_TIME_COST", "1")
os.environ.setdefault("PASSWORD_MEMORY_KIB", "1024")

from semchat.domain.chat import InMemoryMessageStore
from semchat.domain.embeddings import EmbeddingClient, RetryPolicy
from semchat.domain.embeddings.client import ProviderHTTPError, is_retryable
from semchat.domain.identity import InMemoryUserStore
from semchat.main import create_app
from semchat.settings import settings


# Ensure a selector-based event loop policy on Windows to avoid Proactor issues with async IO
if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except Exception:
		# Non-fatal; proceed with default policy
		pass

TEST_DIMENSIONS = 8


class KeywordProvider:
	"""Deterministic bag-of-words embeddings; identical text gives identical vectors."""

	def __init__(self, dimensions: int = TEST_DIMENSIONS) -> None:
		self.dimensions = dimensions
		self.calls: list[str] = []

	async def request(self, text: str):
		self.calls.append(text)
		vector = [0.0] * self.dimensions
		for word in text.lower().split():
			vector[zlib.crc32(word.encode()) % self.dimensions] += 1.0
		# Batch-of-one shape, as the feature-extraction pipeline answers
		return [vector]


class UnavailableProvider:
	def __init__(self) -> None:
		self.calls = 0

	async def request(self, text: str):
		self.calls += 1
		raise ProviderHTTPError(503, "Service Unavailable")


async def _no_sleep(_: float) -> None:
	return None


def build_embedder(provider, *, dimensions: int = TEST_DIMENSIONS, max_attempts: int = 3) -> EmbeddingClient:
	policy = RetryPolicy(max_attempts=max_attempts, backoff=lambda attempt: 0.0, retryable=is_retryable)
	return EmbeddingClient(provider, dimensions=dimensions, policy=policy, sleep=_no_sleep)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Keep settings deterministic across tests."""
	original_env = settings.environment
	original_inline = settings.embedding_inline
	settings.environment = "test"
	settings.embedding_inline = True
	try:
		yield
	finally:
		settings.environment = original_env
		settings.embedding_inline = original_inline


@pytest.fixture
def keyword_provider() -> KeywordProvider:
	return KeywordProvider()


@pytest.fixture
def embedder(keyword_provider) -> EmbeddingClient:
	return build_embedder(keyword_provider)


@pytest.fixture
def unavailable_embedder() -> EmbeddingClient:
	return build_embedder(UnavailableProvider())


@pytest.fixture
def user_store() -> InMemoryUserStore:
	return InMemoryUserStore()


@pytest.fixture
def message_store(user_store) -> InMemoryMessageStore:
	return InMemoryMessageStore(user_store)


@pytest.fixture
def app(user_store, message_store, embedder):
	return create_app(users=user_store, message_store=message_store, embedder=embedder)


@pytest_asyncio.fixture
async def api_client(app):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def register_user(api_client):
	async def _register(name: str, email: str, password: str = "secret123") -> dict:
		response = await api_client.post("/api/users", json={"name": name, "email": email, "password": password})
		assert response.status_code == 201, response.text
		return response.json()

	return _register


@pytest.fixture
def auth_headers():
	def _headers(token: str) -> dict:
		return {"Authorization": f"Bearer {token}"}

	return _headers


@pytest.fixture
def make_embedder():
	return build_embedder
