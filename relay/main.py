import os
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from relay.api import camera, device, gallery_changes, media, telemetry
from relay.services.errors import RelayError
from relay.store import RelayStore

LOG_LEVEL = os.getenv("RELAY_LOG_LEVEL", "INFO").strip().upper() or "INFO"
QUIET_ACCESS_LOG = os.getenv("RELAY_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}
CORS_ORIGINS = [o.strip() for o in os.getenv("RELAY_CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("relay")

if QUIET_ACCESS_LOG:
    # Child devices poll every few seconds; keep warning/error lines only.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

ROUTES = {
    "health": "/health",
    "register": "/api/register (POST)",
    "batteryUpdate": "/api/battery-update (POST)",
    "locationUpdate": "/api/location-update (POST)",
    "notificationUpdate": "/api/notification-update (POST)",
    "devices": "/api/devices (GET)",
    "deleteDevice": "/api/delete-device (DELETE)",
    "clear": "/api/clear (DELETE)",
    "requestCamera": "/api/request-front-camera, /api/request-back-camera (POST)",
    "uploadCamera": "/api/upload-front-camera, /api/upload-back-camera (POST)",
    "checkCameraRequest": "/api/check-camera-request/:requestId (GET)",
    "pendingCameraRequests": "/api/pending-camera-requests/:deviceId (GET)",
    "uploadGallery": "/api/upload-gallery, /api/upload-screenshot (POST)",
    "gallery": "/api/gallery/:deviceId, /api/screenshots/:deviceId (GET)",
    "galleryChanges": "/api/gallery-changes (POST), /api/gallery-changes/:deviceId (GET, DELETE)",
}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def create_app(store: RelayStore | None = None) -> FastAPI:
    store = store or RelayStore()

    app = FastAPI(title="Parental Relay")
    app.state.store = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=CORS_ORIGINS != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, str(exc) or exc.__class__.__name__)

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next):
        response = await call_next(request)
        logger.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.get("/")
    def root():
        return {
            "success": True,
            "message": "Parental Control Relay API",
            "endpoints": ROUTES,
            "deviceCount": store.devices.count(),
        }

    @app.get("/health")
    def health():
        return {
            "success": True,
            "status": "OK",
            "message": "Parental Control Relay is running!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "deviceCount": store.devices.count(),
        }

    app.include_router(device.router)
    app.include_router(telemetry.router)
    app.include_router(camera.router)
    app.include_router(media.router)
    app.include_router(gallery_changes.router)

    app.mount("/uploads", StaticFiles(directory=store.upload_dir), name="uploads")
    return app


app = create_app()
