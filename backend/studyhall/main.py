"""
API StudyHall : présences manuelles, temps d'étude et déclencheurs batch.
Démarrage : uvicorn studyhall.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import studyhall.models  # noqa: F401
from studyhall.routers import attendance, cron
from studyhall.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Sync du contrôle d'accès et évaluation hebdomadaire, si SCHEDULER_ENABLED
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="StudyHall API",
    description="Présences, temps d'étude et objectifs hebdomadaires d'une salle d'étude",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Application élève servie en local pendant le développement
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(attendance.router)
app.include_router(cron.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Erreur non gérée sur %s %s : %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Une erreur interne est survenue."})


@app.get("/api/health", tags=["Santé"])
def health_check():
    return {"status": "ok", "service": "StudyHall API", "version": "0.1.0"}
