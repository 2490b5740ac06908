"""
Point d'entrée principal de l'API Chamada.
Démarrage : uvicorn chamada.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import chamada.models  # noqa: F401 — enregistre tous les modèles dans Base.metadata avant les routers
from chamada.exceptions import (
    ChamadaError,
    NotFoundError,
    OpenSessionExistsError,
    PartialBatchFailure,
    PermissionDeniedError,
    TransientIOError,
    ValidationError,
)
from chamada.routers import ledger, monitor, reports, review, sessions

logger = logging.getLogger(__name__)

# Du plus spécifique au plus général : on prend le premier type de la MRO présent
ERROR_STATUS = {
    OpenSessionExistsError: 409,
    ValidationError: 400,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    TransientIOError: 503,
}

app = FastAPI(
    title="Chamada API",
    description="API de cycle de vie des sessions de présence et de révision d'intégrité",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# CORS — autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(sessions.router)
app.include_router(ledger.router)
app.include_router(monitor.router)
app.include_router(review.router)
app.include_router(review.records_router)
app.include_router(reports.router)


@app.exception_handler(PartialBatchFailure)
async def partial_batch_failure_handler(request: Request, exc: PartialBatchFailure) -> JSONResponse:
    """207 : une partie de la saisie est écrite, le corps détaille ce qui a échoué."""
    return JSONResponse(status_code=207, content=exc.result.model_dump(mode="json"))


@app.exception_handler(ChamadaError)
async def chamada_error_handler(request: Request, exc: ChamadaError) -> JSONResponse:
    status_code = next((ERROR_STATUS[t] for t in type(exc).__mro__ if t in ERROR_STATUS), 400)
    if status_code >= 500:
        logger.warning("Erreur transitoire sur %s : %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Chamada API", "version": "0.1.0"}
