import math

import pytest

from semchat.domain.chat import BackfillJob, MessageService
from semchat.domain.embeddings.client import ProviderHTTPError


class FlakyByText:
	"""Fails for any text containing ``poison``."""

	def __init__(self, inner) -> None:
		self.inner = inner

	async def request(self, text: str):
		if "poison" in text:
			raise ProviderHTTPError(400, "bad input")
		return await self.inner.request(text)


async def _seed_without_vectors(user_store, message_store, unavailable_embedder, bodies):
	alice = await user_store.create("Alice", "alice@example.com", "x")
	bob = await user_store.create("Bob", "bob@example.com", "x")
	service = MessageService(message_store, unavailable_embedder)
	for body in bodies:
		await service.send(alice.id, bob.id, body)


@pytest.mark.asyncio
async def test_backfill_drains_pending_within_expected_batches(user_store, message_store, embedder, unavailable_embedder):
	await _seed_without_vectors(user_store, message_store, unavailable_embedder, [f"note {n}" for n in range(7)])
	pauses = []

	async def _sleep(delay):
		pauses.append(delay)

	job = BackfillJob(message_store, embedder, batch_size=3, pause_seconds=0.05, sleep=_sleep)
	report = await job.run()

	assert await message_store.count_missing_vectors() == 0
	assert report.pending == 7
	assert report.embedded == 7
	assert report.failed == 0
	assert report.batches == math.ceil(7 / 3)
	assert pauses and all(delay == 0.05 for delay in pauses)


@pytest.mark.asyncio
async def test_backfill_terminates_when_every_row_fails(user_store, message_store, unavailable_embedder):
	await _seed_without_vectors(user_store, message_store, unavailable_embedder, ["a", "b", "c"])

	report = await BackfillJob(message_store, unavailable_embedder, batch_size=2, pause_seconds=0).run()

	assert report.embedded == 0
	assert report.failed == 3
	assert report.passes == 1
	assert await message_store.count_missing_vectors() == 3


@pytest.mark.asyncio
async def test_backfill_skips_failing_rows_and_embeds_the_rest(
	user_store, message_store, keyword_provider, unavailable_embedder, make_embedder
):
	await _seed_without_vectors(user_store, message_store, unavailable_embedder, ["good one", "poison pill", "good two"])
	embedder = make_embedder(FlakyByText(keyword_provider))

	report = await BackfillJob(message_store, embedder, batch_size=10, pause_seconds=0).run()

	assert report.embedded == 2
	assert await message_store.count_missing_vectors() == 1
	pending = await message_store.select_missing_vector_batch(10)
	assert [row.body for row in pending] == ["poison pill"]


@pytest.mark.asyncio
async def test_backfill_with_nothing_pending_is_a_no_op(message_store, embedder):
	report = await BackfillJob(message_store, embedder).run()
	assert report.to_dict()["processed"] == 0
	assert report.batches == 0


def test_batch_size_must_be_positive(message_store, embedder):
	with pytest.raises(ValueError):
		BackfillJob(message_store, embedder, batch_size=0)
