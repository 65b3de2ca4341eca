"""Auth middleware -- FastAPI dependencies for identifying the calling reviewer.

Callers are authenticated upstream; this layer only maps a presented
credential to a reviewer id.  Supported credentials:

1. ``Authorization: Bearer <token>`` header
2. ``X-API-Key: <token>`` header

Tokens are configured through ``EngineConfig.api_tokens``
(``ACME_API_TOKENS=token:reviewer,...``).
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from acme.config import EngineConfig, load_config

# Shared config instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Return the singleton EngineConfig, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


@dataclass
class Reviewer:
    id: str


def _lookup(tokens: dict[str, str], presented: str) -> Optional[str]:
    for token, reviewer_id in tokens.items():
        if hmac.compare_digest(token, presented):
            return reviewer_id
    return None


async def get_current_reviewer(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    config: EngineConfig = Depends(get_config),
) -> Reviewer:
    """FastAPI dependency that resolves the calling reviewer.

    Raises ``401 Unauthorized`` if no valid credentials are provided.
    """
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            reviewer_id = _lookup(config.api_tokens, token.strip())
            if reviewer_id is not None:
                return Reviewer(id=reviewer_id)

    if x_api_key:
        reviewer_id = _lookup(config.api_tokens, x_api_key.strip())
        if reviewer_id is not None:
            return Reviewer(id=reviewer_id)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
