import pytest

from semchat.domain.errors import InputInvalid, Unauthorized
from semchat.domain.identity import IdentityService
from semchat.infra import jwt as jwt_helper


@pytest.mark.asyncio
async def test_register_issues_token_for_new_user(user_store):
	service = IdentityService(user_store)

	result = await service.register("Alice", "  Alice@Example.com ", "secret123")

	assert result.user.email == "alice@example.com"
	payload = jwt_helper.decode_access(result.token)
	assert payload["sub"] == str(result.user.id)
	stored = await user_store.find_by_id(result.user.id)
	assert stored.password_hash != "secret123"


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"name, email, password, detail",
	[
		("", "a@example.com", "secret123", "name_email_password_required"),
		("A", None, "secret123", "name_email_password_required"),
		("A", "a@example.com", "123", "password_too_short"),
	],
)
async def test_register_validates_input(user_store, name, email, password, detail):
	with pytest.raises(InputInvalid) as excinfo:
		await IdentityService(user_store).register(name, email, password)
	assert excinfo.value.detail == detail


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(user_store):
	service = IdentityService(user_store)
	await service.register("Alice", "alice@example.com", "secret123")
	with pytest.raises(InputInvalid) as excinfo:
		await service.register("Other", "ALICE@example.com", "secret456")
	assert excinfo.value.detail == "email_taken"


@pytest.mark.asyncio
async def test_login_checks_password(user_store):
	service = IdentityService(user_store)
	await service.register("Alice", "alice@example.com", "secret123")

	result = await service.login("alice@example.com", "secret123")
	assert result.user.name == "Alice"

	with pytest.raises(Unauthorized):
		await service.login("alice@example.com", "wrong-password")
	with pytest.raises(Unauthorized):
		await service.login("nobody@example.com", "secret123")
	with pytest.raises(InputInvalid):
		await service.login("", "")
