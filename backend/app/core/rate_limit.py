"""Shared rate limiter instance for use across route files."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from app.core.config import settings


def get_device_or_ip(request: Request) -> str:
    """Rate limit per tablet when the path names one, else by IP."""
    device_id = request.path_params.get("device_id")
    if device_id:
        return f"device:{device_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_device_or_ip, enabled=settings.rate_limit_enabled)
