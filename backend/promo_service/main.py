from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promo_service.deps import build_code_store, get_code_store
from promo_service.log_config import configure_logging
from promo_service.routes import promo
from promo_service.services.errors import StorageUnavailable
from promo_service.services.store import CodeStore
from promo_service.settings import settings

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Promo Code Service", version="0.1.0")
app.state.code_store = build_code_store(settings)

# Error envelope
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        if exc.detail.get("ok") is False:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        if "code" in exc.detail and "message" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": {"code": "HTTP_ERROR", "message": str(exc.detail)}},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": {"code": "VALIDATION_ERROR", "message": "Validation failed.", "details": exc.errors()},
        },
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(promo.router, tags=["promo"])

@app.get("/healthz")
def healthz() -> dict:
    return {"ok": True}

@app.get("/readyz")
def readyz(store: CodeStore = Depends(get_code_store)) -> JSONResponse:
    try:
        store.load_active()
    except StorageUnavailable:
        return JSONResponse(status_code=503, content={"ready": False})
    return JSONResponse(content={"ready": True})
