from fastapi import Depends, FastAPI, WebSocket, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.orm import Session
from uuid import UUID
import logging
import os
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from . import pubsub
from .auth import user_from_token
from .database import get_db
from .errors import ReviewError
from .rbac import UserPrincipal, ensure_asset_access
from .routes import (
    auth,
    teams,
    projects,
    assets,
    versions,
    annotations,
    comments,
    approvals,
    sharing,
    review,
    notifications,
    webhooks,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

app = FastAPI(title="ReviewDesk API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("PUBLIC_BASE_URL", "http://localhost:3000"), "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
if os.getenv("TESTING") != "1":
    app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

app.include_router(auth.router)
app.include_router(teams.router)
app.include_router(projects.router)
app.include_router(assets.router)
app.include_router(versions.router)
app.include_router(annotations.router)
app.include_router(comments.router)
app.include_router(approvals.router)
app.include_router(sharing.router)
app.include_router(review.router)
app.include_router(notifications.router)
app.include_router(webhooks.router)


PUBLIC_PATHS = {
    "/api/auth/login",
    "/api/auth/register",
    "/metrics",
}
PUBLIC_PREFIXES = ("/api/review/",)


def audit_routes():
    from fastapi.routing import APIRoute
    from .auth import get_current_user

    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith("/api"):
            continue
        if route.path in PUBLIC_PATHS or route.path.startswith(PUBLIC_PREFIXES):
            continue
        calls = [dep.call for dep in route.dependant.dependencies]
        if get_current_user not in calls:
            raise RuntimeError(f"Route {route.path} missing authentication")


audit_routes()


async def _relay(websocket: WebSocket, channel: str):
    async for data in pubsub.iter_channel_events(channel):
        await websocket.send_text(data)


@app.websocket("/ws/assets/{asset_id}/comments")
async def comment_stream(websocket: WebSocket, asset_id: UUID, token: str = "", db: Session = Depends(get_db)):
    try:
        user = user_from_token(db, token)
        ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    except ReviewError:
        await websocket.close(code=1008)
        return
    finally:
        db.close()
    await websocket.accept()
    await _relay(websocket, pubsub.comments_channel(asset_id))


@app.websocket("/ws/notifications")
async def notification_stream(websocket: WebSocket, token: str = "", db: Session = Depends(get_db)):
    try:
        user = user_from_token(db, token)
        user_id = user.id
    except ReviewError:
        await websocket.close(code=1008)
        return
    finally:
        db.close()
    await websocket.accept()
    await _relay(websocket, pubsub.notifications_channel(user_id))
