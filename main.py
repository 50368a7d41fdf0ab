# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import INIT_DB_ON_STARTUP, UPLOAD_ROOT
from db import close_pool
from errors import MarketplaceError
from init_db import init_database
from utils import setup_upload_directories

# --- 1. Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --- 2. Startup / shutdown ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables and upload folders before taking requests
    if INIT_DB_ON_STARTUP:
        init_database()
    setup_upload_directories()
    yield
    await close_pool()


app = FastAPI(title="Marketplace API", lifespan=lifespan)

# --- 3. Uploaded files ---
# /uploads/avatars/... maps to UPLOAD_ROOT/avatars/...
app.mount("/uploads", StaticFiles(directory=UPLOAD_ROOT, check_dir=False), name="uploads")


# --- 4. Error envelope ---
def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {"loc": ("body",), "msg": "Invalid request"}
    field = ".".join(str(part) for part in first["loc"])
    return error_response(400, f"{field}: {first['msg']}")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


# --- 5. Routers ---
from routes.auth import router as auth_router
from routes.favorites import router as favorites_router
from routes.notifications import router as notifications_router
from routes.payments import router as payments_router
from routes.projects import router as projects_router
from routes.proposals import router as proposals_router
from routes.rating import router as rating_router
from routes.stats import router as stats_router
from routes.upload import router as upload_router
from routes.wallet import router as wallet_router

app.include_router(auth_router, prefix="/api")
app.include_router(proposals_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(favorites_router, prefix="/api")
app.include_router(wallet_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(rating_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
app.include_router(upload_router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}
