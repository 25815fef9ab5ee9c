"""Conversion between in-memory vectors and pgvector text literals."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence


def encode(vector: Optional[Iterable[float]]) -> Optional[str]:
	"""Render ``vector`` as ``[x,y,...]``; ``None`` stays ``None`` (SQL NULL)."""
	if vector is None:
		return None
	parts = []
	for value in vector:
		number = float(value)
		if not math.isfinite(number):
			raise ValueError("vector components must be finite")
		parts.append(repr(number))
	return "[" + ",".join(parts) + "]"


def decode(literal: Optional[str]) -> Optional[List[float]]:
	if literal is None:
		return None
	text = literal.strip()
	if not (text.startswith("[") and text.endswith("]")):
		raise ValueError(f"not a vector literal: {literal[:32]!r}")
	inner = text[1:-1].strip()
	if not inner:
		return []
	return [float(part) for part in inner.split(",")]


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
	"""pgvector's ``<=>``: ``1 - cos(a, b)``; zero vectors are maximally distant."""
	if len(a) != len(b):
		raise ValueError("dimension mismatch")
	dot = sum(x * y for x, y in zip(a, b))
	norm_a = math.sqrt(sum(x * x for x in a))
	norm_b = math.sqrt(sum(y * y for y in b))
	if norm_a == 0.0 or norm_b == 0.0:
		return 1.0
	return 1.0 - dot / (norm_a * norm_b)
