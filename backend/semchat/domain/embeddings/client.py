"""Embedding client for turning message text into fixed-length vectors.

The provider is the Hugging Face feature-extraction pipeline by default. The
client owns the retry policy; callers either handle :class:`EmbeddingError`
or use :meth:`EmbeddingClient.try_embed`, which absorbs every failure into
``None`` ("no vector").
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, List, Optional, Protocol

import httpx

from semchat.obs import metrics as obs_metrics
from semchat.settings import Settings, settings as default_settings

from .retry import RetriesExhausted, RetryPolicy, Sleeper, call_with_policy, exponential_backoff

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 502, 503, 504})


class EmbeddingError(Exception):
	"""Base class for embedding failures; never fatal to the caller."""

	outcome = "error"


class NoInput(EmbeddingError):
	outcome = "no_input"


class ProviderRejected(EmbeddingError):
	"""Non-retryable: misconfiguration, bad request, malformed response."""

	outcome = "rejected"


class ProviderUnavailable(EmbeddingError):
	"""The provider stayed rate-limited or overloaded for every attempt."""

	outcome = "unavailable"


class ProviderHTTPError(Exception):
	"""A single unsuccessful provider response."""

	def __init__(self, status_code: int, detail: str) -> None:
		super().__init__(f"provider {status_code}: {detail}")
		self.status_code = status_code
		self.detail = detail


def is_retryable(exc: BaseException) -> bool:
	"""Rate limits, gateway/overload responses and transport failures."""
	if isinstance(exc, ProviderHTTPError):
		if exc.status_code in RETRYABLE_STATUS:
			return True
		return "rate limit" in exc.detail.lower()
	return isinstance(exc, httpx.TransportError)


def normalize_text(text: Any) -> str:
	if not isinstance(text, str):
		return ""
	return text.replace("\r\n", " ").replace("\n", " ").strip()


def unwrap_vector(data: Any) -> List[float]:
	"""Normalise a provider response to a flat list of floats.

	Feature-extraction endpoints answer a single input with ``[f, ...]``,
	``[[f, ...]]`` or deeper batch-of-one nesting; leading single-element
	levels are peeled until a flat numeric sequence remains. Any other shape
	(a batch of several, token-level rows) is rejected.
	"""
	while isinstance(data, list) and len(data) == 1 and isinstance(data[0], list):
		data = data[0]
	if not isinstance(data, list) or not data:
		raise ProviderRejected("malformed_embedding")
	vector: List[float] = []
	for value in data:
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise ProviderRejected("malformed_embedding")
		number = float(value)
		if not math.isfinite(number):
			raise ProviderRejected("malformed_embedding")
		vector.append(number)
	return vector


class EmbeddingProvider(Protocol):
	async def request(self, text: str) -> Any:
		"""Perform one provider call and return the decoded JSON body."""
		...


class HuggingFaceProvider:
	def __init__(
		self,
		http: httpx.AsyncClient,
		*,
		url: str,
		api_token: Optional[str],
		timeout: float = 30.0,
	) -> None:
		self._http = http
		self._url = url
		self._token = api_token
		self._timeout = timeout

	async def request(self, text: str) -> Any:
		if not self._token:
			raise ProviderRejected("provider_token_missing")
		response = await self._http.post(
			self._url,
			json={"inputs": text},
			headers={
				"Authorization": f"Bearer {self._token}",
				"X-Wait-For-Model": "true",
			},
			timeout=self._timeout,
		)
		if response.is_success:
			try:
				return response.json()
			except ValueError:
				raise ProviderRejected("malformed_embedding") from None
		raise ProviderHTTPError(response.status_code, _error_detail(response))


def _error_detail(response: httpx.Response) -> str:
	raw = response.text
	try:
		parsed = response.json()
	except ValueError:
		return raw
	if isinstance(parsed, dict):
		return str(parsed.get("error") or parsed.get("message") or raw)
	return raw


class EmbeddingClient:
	def __init__(
		self,
		provider: EmbeddingProvider,
		*,
		dimensions: Optional[int] = 384,
		policy: Optional[RetryPolicy] = None,
		sleep: Optional[Sleeper] = None,
	) -> None:
		self._provider = provider
		self.dimensions = dimensions
		self._policy = policy or RetryPolicy(max_attempts=3, backoff=exponential_backoff(), retryable=is_retryable)
		self._sleep = sleep
		self._http: Optional[httpx.AsyncClient] = None

	@classmethod
	def from_settings(cls, config: Settings = default_settings, *, http: Optional[httpx.AsyncClient] = None) -> "EmbeddingClient":
		owned = http is None
		http = http or httpx.AsyncClient()
		provider = HuggingFaceProvider(
			http,
			url=config.embedding_url(),
			api_token=config.hf_api_token,
			timeout=config.embedding_timeout_seconds,
		)
		policy = RetryPolicy(
			max_attempts=config.embedding_max_attempts,
			backoff=exponential_backoff(config.embedding_backoff_base_ms, config.embedding_backoff_cap_ms),
			retryable=is_retryable,
		)
		client = cls(provider, dimensions=config.embedding_dimensions, policy=policy)
		if owned:
			client._http = http
		return client

	async def aclose(self) -> None:
		if self._http is not None:
			await self._http.aclose()
			self._http = None

	async def embed(self, text: str) -> List[float]:
		"""Return the embedding for ``text`` or raise :class:`EmbeddingError`."""
		start = time.perf_counter()
		try:
			vector = await self._embed(text)
		except EmbeddingError as exc:
			obs_metrics.embedding_outcome(exc.outcome, time.perf_counter() - start)
			raise
		obs_metrics.embedding_outcome("ok", time.perf_counter() - start)
		return vector

	async def try_embed(self, text: str) -> Optional[List[float]]:
		"""Like :meth:`embed` but returns ``None`` on any embedding failure."""
		try:
			return await self.embed(text)
		except NoInput:
			logger.warning("embedding.no_input")
		except EmbeddingError as exc:
			logger.error("embedding.failed", extra={"outcome": exc.outcome, "error": str(exc)})
		return None

	async def _embed(self, text: str) -> List[float]:
		payload = normalize_text(text)
		if not payload:
			raise NoInput("empty_text")

		async def _attempt() -> Any:
			return await self._provider.request(payload)

		kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
		try:
			data = await call_with_policy(
				_attempt,
				self._policy,
				operation_name="embedding",
				on_retry=_record_retry,
				**kwargs,
			)
		except RetriesExhausted as exc:
			raise ProviderUnavailable(str(exc.last_error)) from exc
		except ProviderHTTPError as exc:
			raise ProviderRejected(str(exc)) from exc
		except httpx.HTTPError as exc:
			raise ProviderRejected(str(exc)) from exc

		vector = unwrap_vector(data)
		if self.dimensions is not None and len(vector) != self.dimensions:
			raise ProviderRejected(f"dimension_mismatch:{len(vector)}")
		return vector


def _record_retry(attempt: int, exc: BaseException, delay: float) -> None:
	if isinstance(exc, ProviderHTTPError):
		reason = "rate_limited" if exc.status_code == 429 else f"http_{exc.status_code}"
	else:
		reason = "transport"
	obs_metrics.embedding_retry(reason)
