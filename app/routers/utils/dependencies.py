import hmac
from typing import Optional

from fastapi import Header, HTTPException

from app.config import get_settings


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, value = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def require_inbound_token(
    authorization: Optional[str] = Header(None),
    x_n8n_token: Optional[str] = Header(None),
) -> None:
    """
    FastAPI dependency guarding automation endpoints with a shared token.
    Accepts `Authorization: Bearer <token>` or `X-N8N-Token: <token>`.
    Open when no token is configured.
    """
    expected = get_settings().inbound_api_token
    if not expected:
        return
    direct = x_n8n_token.strip() if x_n8n_token else None
    supplied = [t for t in (_bearer_token(authorization), direct) if t]
    if not any(
        hmac.compare_digest(t.encode("utf-8"), expected.encode("utf-8"))
        for t in supplied
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")
