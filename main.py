import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import get_cors_origins, get_jwt_secret, get_upload_dir
from core.database import engine, Base
from core.errors import ValidationFailed, field_errors

# Import all models to register them
from models.user import User
from models.truck import Truck
from models.report import Report

# Import routers
from api import auth, drivers, reports, trucks, users

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(
    title="WasteAlert API",
    description="Citizen waste reporting, truck dispatch and clearance tracking",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount file storage
UPLOAD_DIR = Path(get_upload_dir())
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# Register routers
app.include_router(auth.router, prefix="/api")
app.include_router(drivers.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
app.include_router(trucks.router, prefix="/api")
app.include_router(users.router, prefix="/api")


# ==================== ERROR ENVELOPE ====================
_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: "ValidationFailed",
    status.HTTP_401_UNAUTHORIZED: "Unauthenticated",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowed",
    status.HTTP_409_CONFLICT: "Conflict",
}


def _error_body(message: str, code: str, errors=None) -> dict:
    body = {"success": False, "error": message, "code": code}
    if errors:
        body["errors"] = errors
    return body


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = getattr(exc, "code", None) or _DEFAULT_CODES.get(exc.status_code, "Error")
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), code, errors),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error = ValidationFailed(errors=field_errors(exc.errors()))
    return JSONResponse(
        status_code=error.status_code,
        content=_error_body(error.detail, error.code, error.errors),
    )


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    log.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_body("Record conflicts with existing data", "Conflict"),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", "Internal"),
    )


@app.on_event("startup")
def check_configuration() -> None:
    # Fail at boot rather than on the first login.
    get_jwt_secret()
    log.info("WasteAlert API started; uploads served from %s", UPLOAD_DIR.resolve())


# ==================== HEALTH CHECK ====================
@app.get("/health")
def health_check():
    """Health check endpoint for Docker and Kubernetes."""
    return {
        "status": "healthy",
        "service": "WasteAlert API",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
