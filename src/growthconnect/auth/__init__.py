"""Supabase Authentication module.

Verifies dashboard users' Supabase JWTs via the project JWKS endpoint.
"""

from growthconnect.auth.config import get_auth_settings
from growthconnect.auth.jwt import verify_supabase_jwt, get_user_id_from_token

__all__ = [
    "get_auth_settings",
    "verify_supabase_jwt",
    "get_user_id_from_token",
]
