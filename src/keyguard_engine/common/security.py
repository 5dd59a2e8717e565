"""API key authentication dependencies."""

import hmac

from fastapi import Header, HTTPException


async def require_api_key(
    x_keyguard_api_key: str = Header(..., alias="X-Keyguard-Api-Key"),
) -> str:
    """FastAPI dependency that validates admin API key from header."""
    from keyguard_engine.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(x_keyguard_api_key.encode(), settings.api_key.encode()):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_keyguard_api_key
