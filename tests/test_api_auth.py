"""
tests/test_api_auth.py -- Route tests for register, login, and /me.

Covers:
  - register: 201 with a usable session, 409 on a case-variant duplicate
  - login: 200 session; byte-identical 401 for every failure mode
  - /me: 200 with a valid token, 401 without one or once the account is deactivated
  - 422 validation envelope never echoes the submitted password
  - Cache-Control: no-store on every token-bearing response
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"
ME = "/api/v1/auth/me"

_NEW_ACCOUNT = {
    "email": "amira@example.com",
    "password": "pyramids2026",
    "full_name": "Amira Hassan",
    "nationality": "Egyptian",
}


def _register(client, **overrides):
    return client.post(REGISTER, json={**_NEW_ACCOUNT, **overrides})


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


def test_register_returns_session(api) -> None:
    resp = _register(api.client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "Tourist"
    assert isinstance(body["user_id"], int)
    assert resp.headers["cache-control"] == "no-store"

    expires_at = datetime.fromisoformat(body["expires_at"].replace("Z", "+00:00"))
    remaining = expires_at - datetime.now(timezone.utc)
    assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)

    me = api.client.get(ME, headers=_bearer(body["token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "amira@example.com"


def test_register_normalizes_email(api) -> None:
    resp = _register(api.client, email="  Amira@EXAMPLE.com ")
    assert resp.status_code == 201
    assert api.store.find_account_by_email("amira@example.com") is not None


def test_register_duplicate_email_conflicts(api) -> None:
    assert _register(api.client).status_code == 201
    resp = _register(api.client, email="AMIRA@example.com", password="luxor2026x")
    assert resp.status_code == 409
    assert resp.json()["error"] == {"code": "conflict", "message": "Email already exists", "detail": None}


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"password": "short1"},
        {"password": "lettersonly"},
        {"password": "1234567890"},
        {"full_name": "A"},
        {"nationality": "   "},
    ],
)
def test_register_validation_errors(api, overrides) -> None:
    resp = _register(api.client, **overrides)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"
    assert api.store.find_account_by_email("amira@example.com") is None


def test_validation_error_does_not_echo_password(api) -> None:
    resp = _register(api.client, password="secretonly")
    assert resp.status_code == 422
    assert "secretonly" not in resp.text


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_login_returns_session(api) -> None:
    _register(api.client)
    resp = api.client.post(LOGIN, json={"email": "AMIRA@example.com", "password": "pyramids2026"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["role"] == "Tourist"
    assert resp.headers["cache-control"] == "no-store"
    assert api.client.get(ME, headers=_bearer(body["token"])).status_code == 200


def test_login_failures_have_identical_bodies(api) -> None:
    _register(api.client)
    _register(api.client, email="inactive@example.com")
    _register(api.client, email="deleted@example.com")
    inactive = api.store.find_account_by_email("inactive@example.com")
    deleted = api.store.find_account_by_email("deleted@example.com")
    api.store.update_account(inactive.id, is_active=False)
    api.store.update_account(deleted.id, deleted_at=datetime.now(timezone.utc))

    attempts = [
        {"email": "nobody@example.com", "password": "pyramids2026"},
        {"email": "amira@example.com", "password": "pyramids2027"},
        {"email": "inactive@example.com", "password": "pyramids2026"},
        {"email": "deleted@example.com", "password": "pyramids2026"},
    ]
    responses = [api.client.post(LOGIN, json=body) for body in attempts]

    assert {r.status_code for r in responses} == {401}
    assert len({r.content for r in responses}) == 1
    assert responses[0].json()["error"]["message"] == "Invalid credentials"
    assert all(r.headers["www-authenticate"] == "Bearer" for r in responses)


# ---------------------------------------------------------------------------
# /me
# ---------------------------------------------------------------------------


def test_me_returns_profile(api) -> None:
    token = _register(api.client).json()["token"]
    resp = api.client.get(ME, headers=_bearer(token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["full_name"] == "Amira Hassan"
    assert body["nationality"] == "Egyptian"
    assert body["role"] == "Tourist"
    assert "password_hash" not in body


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer"},
        {"Authorization": "Bearer not.a.jwt"},
        {"Authorization": "Basic dXNlcjpwYXNz"},
    ],
)
def test_me_without_valid_token_is_unauthorized(api, headers) -> None:
    resp = api.client.get(ME, headers=headers)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


def test_me_rejects_token_of_deactivated_account(api) -> None:
    body = _register(api.client).json()
    api.store.update_account(body["user_id"], is_active=False)
    resp = api.client.get(ME, headers=_bearer(body["token"]))
    assert resp.status_code == 401


def test_unknown_route_uses_error_envelope(api) -> None:
    resp = api.client.get("/api/v1/auth/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
