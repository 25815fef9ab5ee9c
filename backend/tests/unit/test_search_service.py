import pytest
import pytest_asyncio

from semchat.domain.chat import MessageService, SearchService
from semchat.domain.errors import InputInvalid


@pytest_asyncio.fixture
async def seeded(user_store, message_store, embedder):
	alice = await user_store.create("Alice", "alice@example.com", "x")
	bob = await user_store.create("Bob", "bob@example.com", "x")
	carol = await user_store.create("Carol", "carol@example.com", "x")
	service = MessageService(message_store, embedder)
	await service.send(alice.id, bob.id, "dinner plans tonight")
	await service.send(bob.id, alice.id, "the quarterly budget report")
	await service.send(alice.id, bob.id, "pizza or sushi for dinner")
	await service.send(bob.id, carol.id, "dinner plans tonight")
	return alice, bob, carol


@pytest.mark.asyncio
async def test_search_is_scoped_to_the_requesting_user(seeded, message_store, embedder):
	alice, bob, carol = seeded
	search = SearchService(message_store, embedder)

	results = await search.search(carol.id, "dinner plans tonight")

	assert results
	assert all(hit.message.is_participant(carol.id) for hit in results)


@pytest.mark.asyncio
async def test_exact_text_ranks_first_and_scores_do_not_increase(seeded, message_store, embedder):
	alice, _, _ = seeded
	search = SearchService(message_store, embedder)

	results = await search.search(alice.id, "the quarterly budget report")

	assert results[0].message.body == "the quarterly budget report"
	assert results[0].similarity == pytest.approx(1.0)
	scores = [hit.similarity for hit in results]
	assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_limit_truncates_and_is_capped(seeded, message_store, embedder):
	alice, _, _ = seeded
	search = SearchService(message_store, embedder, default_limit=10, max_limit=2)

	assert len(await search.search(alice.id, "dinner", limit=1)) == 1
	assert len(await search.search(alice.id, "dinner", limit=100)) == 2
	assert search.resolve_limit(None) == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -3])
async def test_non_positive_limit_is_rejected(message_store, embedder, limit):
	search = SearchService(message_store, embedder)
	with pytest.raises(InputInvalid):
		await search.search(1, "hello", limit=limit)


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None])
async def test_blank_query_is_rejected(message_store, embedder, query):
	search = SearchService(message_store, embedder)
	with pytest.raises(InputInvalid) as excinfo:
		await search.search(1, query)
	assert excinfo.value.detail == "query_required"


@pytest.mark.asyncio
async def test_provider_outage_degrades_to_empty_results(seeded, message_store, unavailable_embedder):
	alice, _, _ = seeded
	search = SearchService(message_store, unavailable_embedder)

	assert await search.search(alice.id, "dinner") == []


@pytest.mark.asyncio
async def test_messages_without_vectors_are_not_returned(user_store, message_store, embedder, unavailable_embedder):
	alice = await user_store.create("Alice", "alice@example.com", "x")
	bob = await user_store.create("Bob", "bob@example.com", "x")
	await MessageService(message_store, unavailable_embedder).send(alice.id, bob.id, "no vector here")

	results = await SearchService(message_store, embedder).search(alice.id, "no vector here")

	assert results == []
