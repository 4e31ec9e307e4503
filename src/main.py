"""Entry point for the call-signaling relay service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import build_session_manager
from api.routes import health_router
from api.routes import router as api_router
from api.signaling_routes import router as signaling_router
from config.settings import get_settings
from db.base import engine, init_db
from signaling.dispatcher import ProtocolDispatcher
from signaling.errors import SignalingError


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    manager = build_session_manager()
    app.state.session_manager = manager
    app.state.dispatcher = ProtocolDispatcher(manager)
    yield
    await manager.shutdown()
    await engine.dispose()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Call Signaling Relay",
    description="Presence, call lifecycle and negotiation relay for peer-to-peer calls.",
    lifespan=lifespan,
)


@app.exception_handler(SignalingError)
async def signaling_error_handler(request: Request, exc: SignalingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


app.include_router(health_router)
app.include_router(api_router, prefix="/api")
app.include_router(signaling_router)
