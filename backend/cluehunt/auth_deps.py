from __future__ import annotations
from dataclasses import dataclass
from uuid import UUID
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from cluehunt.security import decode_token

security = HTTPBearer()

@dataclass(frozen=True)
class Identity:
    """Already-resolved caller identity handed to the core."""
    role: str  # player|coordinator
    team_id: UUID | None = None

    @property
    def is_coordinator(self) -> bool:
        return self.role == "coordinator"

def identity_from_token(token: str) -> Identity:
    """Raises ValueError for anything that is not a valid player or coordinator token."""
    try:
        data = decode_token(token)
    except Exception as e:
        raise ValueError("Invalid token") from e
    role = data.get("role")
    if role == "coordinator":
        return Identity(role="coordinator")
    if role == "player" and data.get("team_id"):
        return Identity(role="player", team_id=UUID(data["team_id"]))
    raise ValueError("Wrong token type")

async def get_identity(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Identity:
    try:
        return identity_from_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))

async def require_coordinator(ident: Identity = Depends(get_identity)) -> Identity:
    if not ident.is_coordinator:
        raise HTTPException(status_code=403, detail="Coordinator access required")
    return ident

async def require_player(ident: Identity = Depends(get_identity)) -> Identity:
    if ident.role != "player":
        raise HTTPException(status_code=403, detail="Team access required")
    return ident
