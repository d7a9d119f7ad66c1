from __future__ import annotations
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from cluehunt.config import settings

JWT_ALG = "HS256"

def make_identity_token(role: str, team_id: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": team_id or "coordinator",
        "role": role,
        "team_id": team_id,
        "iat": now.timestamp(),
        "exp": int((now + timedelta(minutes=settings.token_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALG)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALG])

def check_passcode(candidate: str) -> bool:
    return hmac.compare_digest(candidate.encode(), settings.coordinator_passcode.encode())
