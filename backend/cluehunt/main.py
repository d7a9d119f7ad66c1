from __future__ import annotations
import asyncio
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from cluehunt.config import settings
from cluehunt.deps import feed
from cluehunt.logging_setup import configure_logging
from cluehunt.routes.system import router as system_router
from cluehunt.routes.auth import router as auth_router
from cluehunt.routes.teams import router as teams_router
from cluehunt.routes.clues import router as clues_router
from cluehunt.routes.progress import router as progress_router
from cluehunt.routes.submissions import router as submissions_router
from cluehunt.routes.reviews import router as reviews_router
from cluehunt.routes.notices import router as notices_router
from cluehunt.routes.mystery import router as mystery_router
from cluehunt.routes.finale import router as finale_router
from cluehunt.routes.live import router as live_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    relay_task = None
    if feed.relay is not None:
        # Diffs written by other processes (workers, RQ jobs) reach our websockets
        relay_task = asyncio.create_task(feed.relay.pump(feed))
    yield
    # Shutdown
    if relay_task is not None:
        relay_task.cancel()
        try:
            await relay_task
        except asyncio.CancelledError:
            pass
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for live clue hunts",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(auth_router)
app.include_router(teams_router)
app.include_router(clues_router)
app.include_router(progress_router)
app.include_router(submissions_router)
app.include_router(reviews_router)
app.include_router(notices_router)
app.include_router(mystery_router)
app.include_router(finale_router)
app.include_router(live_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    try:
        response: Response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = rid
    return response
