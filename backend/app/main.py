"""FastAPI application entry point."""

import json
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sqlalchemy import text

from app.api.routes import api_router
from app.core.config import settings
from app.core.log_config import configure_logging
from app.core.rate_limit import limiter
from app.db.base import Base
from app.db.session import SessionLocal, engine, session_scope
from app.services.floor_runtime import DEVICES_CHANNEL, FloorRuntime
from app.services.order_signal import SIGNAL_CHANNEL
from app.services.screen_hub import ScreenHub

configure_logging()
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")

screen_hub = ScreenHub()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Tablets need the Geolocation API on our own origin
        response.headers["Permissions-Policy"] = "geolocation=(self)"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        # Skip logging for health checks and docs
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
            process_time = time.time() - start_time

            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            request_logger.log(
                log_level,
                f"Response: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            return response
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {str(e)} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting NectarV floor service")

    # Tests point these at their own database before startup
    db_engine = getattr(app.state, "engine", engine)
    session_factory = getattr(app.state, "session_factory", SessionLocal)

    # Create tables if they don't exist
    Base.metadata.create_all(bind=db_engine)

    runtime = FloorRuntime(session_factory, screen_hub.broadcast)
    app.state.floor = runtime
    runtime.start()

    yield

    await runtime.stop()
    logger.info("Shutting down NectarV floor service")


app = FastAPI(
    title="NectarV Floor Service",
    description="Tablet geofencing, pre-order windows and new-order alerts",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin", "X-Requested-With", "X-Request-ID"],
    max_age=600,
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/health/ready")
def readiness_check(request: Request):
    """Readiness check: database reachable, plus what the floor is doing."""
    database = "healthy"
    try:
        with session_scope(getattr(request.app.state, "session_factory", None)) as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "unhealthy"

    runtime = request.app.state.floor
    return {
        "status": "ready" if database == "healthy" else "degraded",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": database,
            "screens": screen_hub.summary(),
            "devices": len(runtime.guards.device_ids()),
            "order_polls": {name: poller.poll_count for name, poller in runtime.pollers.items()},
        },
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "NectarV Floor Service API",
        "docs": "/docs",
        "health": "/health",
    }


def _handle_client_message(websocket: WebSocket, channel: str, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply a JSON message from a screen. Returns a reply, if any."""
    runtime = websocket.app.state.floor
    message_type = message.get("type")

    if message_type == "ping":
        screen_hub.touch(websocket)
        return {"type": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}

    if message_type == "interaction":
        # First tap/click/key on the screen unlocks its audio
        if channel in runtime.alerts.sinks:
            runtime.alerts.arm(channel)
            return {"type": "audio_state", "state": runtime.alerts.sinks[channel].state.value}
        return None

    if message_type == "notification_permission":
        notifier = runtime.alerts.notifiers.get(channel)
        if notifier is not None:
            notifier.set_permission(str(message.get("permission", "")))
        return None

    logger.debug(f"Ignoring WebSocket message '{message_type}' on {channel}")
    return None


async def _ws_loop(websocket: WebSocket, channel: str):
    """Receive loop for one screen: ping/pong, audio unlock and permission reports."""
    if not await screen_hub.join(websocket, channel, websocket.query_params.get("screen")):
        return

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                screen_hub.touch(websocket)
                await websocket.send_text("pong")
                continue

            if len(data) > screen_hub.MAX_MESSAGE_SIZE:
                logger.warning(f"WebSocket message too large on {channel}", extra={"channel": channel})
                continue

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue

            reply = _handle_client_message(websocket, channel, message)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        screen_hub.leave(websocket)
    except Exception as e:
        logger.error(f"WebSocket error in {channel}: {e}", exc_info=True)
        screen_hub.leave(websocket)


@app.websocket("/ws/kitchen")
async def websocket_kitchen(websocket: WebSocket):
    """Kitchen display: new-order chimes and notifications."""
    await _ws_loop(websocket, "kitchen")


@app.websocket("/ws/waiters")
async def websocket_waiters(websocket: WebSocket):
    """Waiter terminals: cash-payment chimes and notifications."""
    await _ws_loop(websocket, "waiters")


@app.websocket("/ws/orders")
async def websocket_orders(websocket: WebSocket):
    """Order-created signals for screens that re-fetch on demand."""
    await _ws_loop(websocket, SIGNAL_CHANNEL)


@app.websocket("/ws/devices")
async def websocket_devices(websocket: WebSocket):
    """Admin view of tablets leaving the premises."""
    await _ws_loop(websocket, DEVICES_CHANNEL)
