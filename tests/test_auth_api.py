import uuid
from datetime import timedelta

import pytest
from helpers import API, DEFAULT_PASSWORD, auth_headers, register
from httpx import AsyncClient

from gatepass.core.exceptions import AuthenticationFailed
from gatepass.core.security import issue_access_token, verify_access_token
from gatepass.models.user import UserRole
from gatepass.services.passes import pass_issuer


@pytest.mark.asyncio
async def test_register(client: AsyncClient) -> None:
    response = await client.post(
        f"{API}/auth/register",
        json={
            "name": "Priya Organizer",
            "email": "priya@example.com",
            "phone": "+919876543210",
            "password": DEFAULT_PASSWORD,
            "role": "organizer",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Registration successful"
    assert data["user"]["email"] == "priya@example.com"
    assert data["user"]["role"] == "organizer"
    assert "hashed_password" not in data["user"]
    payload = verify_access_token(data["token"])
    assert str(payload.user_id) == data["user"]["id"]
    assert payload.role is UserRole.ORGANIZER


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient) -> None:
    await register(client, "First", "dup@example.com")

    response = await client.post(
        f"{API}/auth/register",
        json={
            "name": "Second",
            "email": "dup@example.com",
            "password": DEFAULT_PASSWORD,
            "role": "user",
        },
    )

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_user"


@pytest.mark.parametrize(
    "body",
    [
        {"name": "No Contact", "password": DEFAULT_PASSWORD, "role": "user"},
        {"name": "Admin", "email": "a@example.com", "password": DEFAULT_PASSWORD, "role": "admin"},
        {"name": "Short", "email": "s@example.com", "password": "short", "role": "user"},
    ],
)
@pytest.mark.asyncio
async def test_register_rejects_invalid_bodies(client: AsyncClient, body: dict) -> None:
    response = await client.post(f"{API}/auth/register", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


@pytest.mark.asyncio
async def test_login_with_email_and_phone(client: AsyncClient) -> None:
    await client.post(
        f"{API}/auth/register",
        json={
            "name": "Lena Login",
            "email": "lena@example.com",
            "phone": "+14155550100",
            "password": DEFAULT_PASSWORD,
            "role": "user",
        },
    )

    by_email = await client.post(
        f"{API}/auth/login", json={"email": "lena@example.com", "password": DEFAULT_PASSWORD}
    )
    by_phone = await client.post(
        f"{API}/auth/login", json={"phone": "+14155550100", "password": DEFAULT_PASSWORD}
    )

    assert by_email.status_code == 200
    assert by_email.json()["message"] == "Login successful"
    assert by_phone.status_code == 200
    assert by_phone.json()["user"]["name"] == "Lena Login"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient) -> None:
    await register(client, "Wes Wrong", "wes@example.com")

    response = await client.post(
        f"{API}/auth/login", json={"email": "wes@example.com", "password": "not-the-password"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid login credentials."


@pytest.mark.asyncio
async def test_login_unknown_user(client: AsyncClient) -> None:
    response = await client.post(
        f"{API}/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_without_contact(client: AsyncClient) -> None:
    response = await client.post(f"{API}/auth/login", json={"password": DEFAULT_PASSWORD})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Missing credentials.")


def test_expired_access_token_is_rejected() -> None:
    token = issue_access_token(uuid.uuid4(), UserRole.USER, expires_delta=timedelta(seconds=-5))

    with pytest.raises(AuthenticationFailed):
        verify_access_token(token)


@pytest.mark.asyncio
async def test_pass_is_not_a_bearer_token(client: AsyncClient) -> None:
    token = pass_issuer.mint(uuid.uuid4(), uuid.uuid4(), uuid.uuid4())

    response = await client.get(f"{API}/bookings", headers=auth_headers(token))

    assert response.status_code == 401
