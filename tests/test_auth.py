"""Supabase JWT verification."""

import base64
import time

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt as jose_jwt

from growthconnect.auth import dependencies
from growthconnect.auth import jwt as auth_jwt
from growthconnect.auth.config import AuthSettings
from growthconnect.auth.permissions import CONNECT_INTEGRATIONS, VIEW_INTEGRATIONS, has_permission
from growthconnect.metadata import WorkspaceMember

SECRET = "supabase-test-signing-secret"


@pytest.fixture
def auth_settings(monkeypatch):
    settings = AuthSettings(supabase_url="https://project.supabase.co", jwt_algorithm="HS256")
    monkeypatch.setattr(auth_jwt, "get_auth_settings", lambda: settings)
    keys = {
        "keys": [
            {
                "kty": "oct",
                "alg": "HS256",
                "k": base64.urlsafe_b64encode(SECRET.encode()).decode().rstrip("="),
            }
        ]
    }
    monkeypatch.setattr(auth_jwt.jwks_cache, "get", lambda _settings: keys)
    return settings


def _token(**claims):
    payload = {"sub": "user-9", "aud": "authenticated", "exp": int(time.time()) + 300}
    payload.update(claims)
    return jose_jwt.encode(payload, SECRET, algorithm="HS256")


def test_jwks_url():
    settings = AuthSettings(supabase_url="https://project.supabase.co")

    assert settings.jwks_url == "https://project.supabase.co/auth/v1/.well-known/jwks.json"


def test_valid_token_yields_subject(auth_settings):
    assert auth_jwt.get_user_id_from_token(_token()) == "user-9"


def test_expired_token_rejected(auth_settings):
    with pytest.raises(JWTError):
        auth_jwt.get_user_id_from_token(_token(exp=int(time.time()) - 60))


def test_wrong_audience_rejected(auth_settings):
    with pytest.raises(JWTError):
        auth_jwt.get_user_id_from_token(_token(aud="anon"))


def test_wrong_signature_rejected(auth_settings):
    forged = jose_jwt.encode({"sub": "user-9", "aud": "authenticated"}, "other-secret", algorithm="HS256")

    with pytest.raises(JWTError):
        auth_jwt.get_user_id_from_token(forged)


def test_dependency_accepts_bearer_header(monkeypatch):
    monkeypatch.setattr(dependencies, "get_user_id_from_token", lambda token: f"id-for-{token}")

    assert dependencies.get_current_user_id("Bearer abc") == "id-for-abc"


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Token abc"])
def test_dependency_rejects_bad_headers(header):
    with pytest.raises(HTTPException) as exc_info:
        dependencies.get_current_user_id(header)

    assert exc_info.value.status_code == 401


def test_dependency_maps_jwt_errors_to_401(monkeypatch):
    def reject(token):
        raise JWTError("bad")

    monkeypatch.setattr(dependencies, "get_user_id_from_token", reject)

    with pytest.raises(HTTPException) as exc_info:
        dependencies.get_current_user_id("Bearer abc")
    assert exc_info.value.status_code == 401


@pytest.mark.parametrize(
    ("role", "permission", "allowed"),
    [
        ("owner", CONNECT_INTEGRATIONS, True),
        ("Admin", CONNECT_INTEGRATIONS, True),
        ("member", CONNECT_INTEGRATIONS, False),
        ("viewer", VIEW_INTEGRATIONS, True),
        ("guest", VIEW_INTEGRATIONS, False),
    ],
)
def test_role_permissions(role, permission, allowed):
    assert has_permission(WorkspaceMember(role=role), permission) is allowed


def test_no_membership_has_no_permissions():
    assert has_permission(None, VIEW_INTEGRATIONS) is False


def test_workspace_permission_check(test_db, workspace):
    assert dependencies.check_workspace_permission(
        test_db, "user-1", str(workspace.id), CONNECT_INTEGRATIONS
    ) == workspace.id

    with pytest.raises(HTTPException) as exc_info:
        dependencies.check_workspace_permission(test_db, "stranger", str(workspace.id), VIEW_INTEGRATIONS)
    assert exc_info.value.status_code == 403

    with pytest.raises(HTTPException) as exc_info:
        dependencies.check_workspace_permission(test_db, "user-1", "not-a-uuid", VIEW_INTEGRATIONS)
    assert exc_info.value.status_code == 400
