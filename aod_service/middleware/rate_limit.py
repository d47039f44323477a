"""
Shared rate limiter.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from aod_service.config import settings

limiter = Limiter(key_func=get_remote_address)

# Applied to every data endpoint; processing a directory spawns many GDAL processes
DATA_RATE_LIMIT = f"{settings.rate_limit_requests}/minute"
