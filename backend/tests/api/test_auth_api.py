import pytest


@pytest.mark.asyncio
async def test_register_returns_user_and_token(api_client):
	response = await api_client.post(
		"/api/users",
		json={"name": "Alice", "email": "alice@example.com", "password": "secret123"},
	)
	assert response.status_code == 201
	body = response.json()
	assert body["user"] == {"id": 1, "name": "Alice", "email": "alice@example.com"}
	assert body["token"]
	assert response.headers.get("X-Request-Id")


@pytest.mark.asyncio
async def test_register_validation_errors_are_400(api_client, register_user):
	response = await api_client.post("/api/users", json={"name": "Alice", "email": "a@example.com", "password": "123"})
	assert response.status_code == 400
	assert response.json()["detail"] == "password_too_short"

	await register_user("Alice", "alice@example.com")
	duplicate = await api_client.post(
		"/api/users",
		json={"name": "Again", "email": "alice@example.com", "password": "secret123"},
	)
	assert duplicate.status_code == 400
	assert duplicate.json()["detail"] == "email_taken"
	assert "request_id" in duplicate.json()


@pytest.mark.asyncio
async def test_login_and_me(api_client, register_user, auth_headers):
	await register_user("Alice", "alice@example.com")

	login = await api_client.post("/api/login", json={"email": "alice@example.com", "password": "secret123"})
	assert login.status_code == 200
	token = login.json()["token"]

	me = await api_client.get("/api/me", headers=auth_headers(token))
	assert me.status_code == 200
	assert me.json()["name"] == "Alice"


@pytest.mark.asyncio
async def test_login_with_wrong_password_is_401(api_client, register_user):
	await register_user("Alice", "alice@example.com")
	response = await api_client.post("/api/login", json={"email": "alice@example.com", "password": "nope-nope"})
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_protected_routes_require_bearer_token(api_client, auth_headers):
	assert (await api_client.get("/api/me")).status_code == 401
	response = await api_client.get("/api/users", headers=auth_headers("garbage"))
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_users_are_listed_by_name(api_client, register_user, auth_headers):
	carol = await register_user("Carol", "carol@example.com")
	await register_user("Alice", "alice@example.com")

	response = await api_client.get("/api/users", headers=auth_headers(carol["token"]))

	assert [user["name"] for user in response.json()] == ["Alice", "Carol"]
