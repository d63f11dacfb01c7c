import os
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rewear.database import init_database
from rewear.errors import ReWearError

from rewear.routes import (
    health,
    auth,
    items,
    orders,
    points,
    reviews,
    wishlist,
    admin,
    demo,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CLIENT_URLS = [
    origin.strip()
    for origin in os.getenv("CLIENT_URL", "http://localhost:8080").split(",")
    if origin.strip()
]


app = FastAPI(title="ReWear API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CLIENT_URLS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error responses ────────────────────────────────────────────────
def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), error=str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return _error(400, "Validation failed", errors=errors)


@app.exception_handler(ReWearError)
async def rewear_exception_handler(request: Request, exc: ReWearError):
    return _error(exc.status_code, exc.message, error=exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error | path=%s", request.url.path)
    return _error(500, "Internal server error")


# ── Routers ────────────────────────────────────────────────────────
app.include_router(health.router,    prefix="/api")
app.include_router(auth.router,      prefix="/api")
app.include_router(items.router,     prefix="/api")
app.include_router(orders.router,    prefix="/api")
app.include_router(points.router,    prefix="/api")
app.include_router(reviews.router,   prefix="/api")
app.include_router(wishlist.router,  prefix="/api")
app.include_router(admin.router,     prefix="/api")
app.include_router(demo.router,      prefix="/api")


@app.on_event("startup")
def startup():
    init_database()
    logger.info("ReWear API started | origins=%s", ",".join(CLIENT_URLS))
