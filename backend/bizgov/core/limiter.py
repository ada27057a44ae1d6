"""Request rate limiting."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bizgov.core.config import get_settings

settings = get_settings()

limiter = Limiter(key_func=get_remote_address)

LOGIN_LIMIT = f"{settings.rate_limit_requests} per {settings.rate_limit_period} seconds"
