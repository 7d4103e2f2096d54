from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlmodel import Session, text

from database import create_db, engine
from models import KeyValueEntry
from routers.alerts import router as alerts_router
from routers.medicines import router as medicines_router
from routers.users import router as users_router
from services.storage import KeyValueStore
from services.tracker import MedicineTracker, get_tracker
from ws import manager

logger = logging.getLogger("medtrack")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db()
    tracker = MedicineTracker(KeyValueStore(engine), notify=manager.broadcast_alerts)
    await tracker.load()
    await tracker.on_medicines_changed()
    app.state.tracker = tracker
    yield


app = FastAPI(title="Medtrack", version="0.1.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled server error for %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.middleware("http")
async def no_cache_api_responses(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith(
        (
            "/medicines",
            "/alerts",
            "/users",
            "/schedule",
            "/interactions",
            "/status",
            "/api/v1/",
        )
    ):
        response.headers["Cache-Control"] = "no-store, max-age=0"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
    return response


app.include_router(medicines_router)
app.include_router(alerts_router)
app.include_router(users_router)
app.include_router(medicines_router, prefix="/api/v1")
app.include_router(alerts_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/health")
def health():
    try:
        with Session(engine) as session:
            session.exec(text("SELECT 1"))
        return {
            "status": "ok",
            "database": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception:
        return JSONResponse(status_code=500, content={"status": "error"})


@app.get("/status")
def status(tracker: MedicineTracker = Depends(get_tracker)):
    return {
        "medicines": len(tracker.medicines),
        "alerts": len(tracker.alerts),
        "unreadAlerts": len(tracker.get_unread_alerts()),
        "activeUserId": tracker.state.active_user_id,
        "lastError": tracker.state.last_error,
    }


@app.get("/demo/reset")
async def demo_reset(tracker: MedicineTracker = Depends(get_tracker)):
    if os.getenv("MEDTRACK_ENABLE_DEMO_RESET", "0") != "1":
        raise HTTPException(status_code=404, detail="Not found")

    logger.info("Demo reset triggered")
    with Session(tracker.store.engine) as session:
        session.exec(KeyValueEntry.__table__.delete())  # type: ignore[arg-type]
        session.commit()

    from seed import seed_medicines
    await seed_medicines(tracker.store)

    await tracker.load()
    await tracker.on_medicines_changed()
    return {"status": "demo reset complete"}


@app.websocket("/ws/alerts")
async def alerts_ws(websocket: WebSocket):
    await manager.connect_alerts(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect_alerts(websocket)
