import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.audit.router import router as audit_router
from app.catalog.router import router as catalog_router
from app.core.config import settings
from app.core.errors import AuditEngineError
from app.db import models
from app.db.init_db import ensure_missing_columns, seed_default_catalog
from app.db.session import SessionLocal, engine

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("eagl")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Motor de pontuacao e fluxo de auditorias de conformidade",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    ensure_missing_columns(engine)
    if settings.SEED_DEFAULT_CATALOG:
        with SessionLocal() as db:
            seed_default_catalog(db)
    if settings.ENV.lower() == "production" and settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")


app.include_router(catalog_router, prefix="/api")
app.include_router(audit_router, prefix="/api")


@app.exception_handler(AuditEngineError)
async def audit_engine_error_handler(request: Request, exc: AuditEngineError):
    logger.info(
        "request rejected method=%s path=%s error_code=%s message=%s",
        request.method,
        request.url.path,
        exc.error_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Erro interno method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Ocorreu um erro, tente novamente mais tarde"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}
