"""FastAPI application entry point."""

import logging
import re

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from growthconnect.database import SessionLocal
from growthconnect.ratelimit import limiter
from growthconnect.routers import integrations, oauth
from growthconnect.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    description="OAuth connection service for workspace marketing integrations",
    version="0.1.0"
)
logger = logging.getLogger(__name__)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
async def log_oauth_configuration():
    """Report which OAuth secrets are present, without their values."""
    audit = settings.oauth_config_audit()
    logger.info("OAuth configuration: %s", audit)
    missing = sorted(
        name for name, present in audit.items()
        if name.endswith("_configured") and not present
    )
    if missing:
        logger.warning("OAuth configuration incomplete: %s", ", ".join(missing))


# The dashboard calls /oauth/init cross-origin; the callback is a top-level
# navigation and does not need CORS.
_allowed_origins = list(settings.oauth_allowed_origins)
_suffix_pattern = "|".join(re.escape(suffix) for suffix in settings.oauth_trusted_domain_suffixes)
if settings.is_development:
    _allowed_origins += list(settings.oauth_dev_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=rf"https://[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.(?:{_suffix_pattern})" if _suffix_pattern else None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "x-client-info", "apikey"],
)

app.include_router(oauth.router)
app.include_router(integrations.router)


@app.get("/health")
async def health_check():
    """Health check endpoint with DB connectivity verification."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}")
    finally:
        db.close()
