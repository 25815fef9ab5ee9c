"""Embedding generation with bounded retry."""

from .client import (
	EmbeddingClient,
	EmbeddingError,
	EmbeddingProvider,
	HuggingFaceProvider,
	NoInput,
	ProviderRejected,
	ProviderUnavailable,
	unwrap_vector,
)
from .retry import RetriesExhausted, RetryPolicy, call_with_policy, exponential_backoff

__all__ = [
	"EmbeddingClient",
	"EmbeddingError",
	"EmbeddingProvider",
	"HuggingFaceProvider",
	"NoInput",
	"ProviderRejected",
	"ProviderUnavailable",
	"RetriesExhausted",
	"RetryPolicy",
	"call_with_policy",
	"exponential_backoff",
	"unwrap_vector",
]
