"""Per-client rate limiting for the OAuth initiation endpoint."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from growthconnect.settings import settings

limiter = Limiter(key_func=get_remote_address)

OAUTH_INIT_LIMIT = settings.oauth_init_rate_limit
