from __future__ import annotations
import asyncio
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
import structlog

from cluehunt.auth_deps import identity_from_token
from cluehunt.deps import get_feed
from cluehunt.services.changefeed import ChangeFeed

router = APIRouter(tags=["live"])
log = structlog.get_logger()

# collection -> document field a player subscription is pinned to (None = public)
PLAYER_SCOPE = {
    "submissions": "team_id",
    "notifications": "team_id",
    "accusations": "team_id",
    "teams": "id",
    "clues": None,
    "announcements": None,
}
STAFF_ONLY = {"mystery"}

# Application close codes (4000-4999)
CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_UNKNOWN = 4404


async def _wait_for_close(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; this only notices the hang-up.
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/live/{collection}")
async def live(
    websocket: WebSocket,
    collection: str,
    token: str = Query(...),
    team_id: str | None = Query(default=None),
    feed: ChangeFeed = Depends(get_feed),
):
    """
    Push diffs for one collection as JSON frames:
      {"collection", "op": added|modified|removed, "id", "doc"}
    A {"op": "resync"} frame means diffs were dropped; reload and keep listening.
    """
    try:
        ident = identity_from_token(token)
    except ValueError:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return
    if collection not in PLAYER_SCOPE and collection not in STAFF_ONLY:
        await websocket.close(code=CLOSE_UNKNOWN)
        return

    filters: dict = {}
    if ident.is_coordinator:
        if team_id:
            filters["team_id"] = team_id
    else:
        if collection in STAFF_ONLY:
            await websocket.close(code=CLOSE_FORBIDDEN)
            return
        field = PLAYER_SCOPE[collection]
        if field:
            filters[field] = str(ident.team_id)

    await websocket.accept()
    async with feed.subscribe(collection, **filters) as sub:
        closed = asyncio.create_task(_wait_for_close(websocket))
        try:
            await websocket.send_json({"op": "ready", "collection": collection})
            while True:
                nxt = asyncio.ensure_future(sub.get())
                done, _ = await asyncio.wait({nxt, closed}, return_when=asyncio.FIRST_COMPLETED)
                if nxt not in done:
                    nxt.cancel()
                    break
                change = nxt.result()
                if sub.overflowed:
                    sub.overflowed = False
                    await websocket.send_json({"op": "resync", "collection": collection})
                await websocket.send_json({
                    "collection": change.collection,
                    "op": change.op,
                    "id": change.id,
                    "doc": change.doc,
                })
        except WebSocketDisconnect:
            pass
        finally:
            closed.cancel()
    log.info("live_closed", collection=collection, role=ident.role)
