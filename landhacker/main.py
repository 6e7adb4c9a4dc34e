import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Routers
from .routers.analysis import router as analysis_router
from .routers.account import router as account_router
from .routers.parcels import router as parcels_router

# Core modules
from .core.config import settings
from .core.logging import configure_logging, CorrelationIdMiddleware
from .core.metrics import PromMiddleware, metrics_endpoint
from .core.security import token_verifier

# Collaborators
from .data.base import DistanceClient, PropertyStore, TokenVerifier
from .data.distance_client import distance_client
from .data.property_store import property_store
from .models.base import ValuationModel, ValuationModelError
from .services.analysis_service import valuation_model
from .services.errors import AnalysisFailed, LandhackerError

logger = logging.getLogger(__name__)

async def landhacker_error_handler(request: Request, exc: LandhackerError):
    if not isinstance(exc, AnalysisFailed):
        logger.info("Request rejected: %s", exc.reason, extra={"reason": exc.reason})
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "reason": exc.reason})

async def model_error_handler(request: Request, exc: ValuationModelError):
    logger.error("Model call failed: %s", exc)
    return JSONResponse(status_code=502, content={"message": "AI service unavailable", "reason": "ai_unavailable"})

def create_app(
    store: PropertyStore | None = None,
    distance: DistanceClient | None = None,
    model: ValuationModel | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """
    App factory so tests and ASGI servers can instantiate cleanly.
    Collaborators default to the env-selected implementations.
    """
    configure_logging()  # Set up JSON logs + correlation-id filter

    app = FastAPI(
        title="Landhacker Land Valuation API",
        version="1.0.0",
        description="Comparable pricing, AI land valuation and analysis billing.",
    )
    app.state.store = store if store is not None else property_store()
    app.state.distance = distance if distance is not None else distance_client()
    app.state.model = model if model is not None else valuation_model()
    app.state.token_verifier = verifier if verifier is not None else token_verifier()

    # CORS: allow the map client to call the API.
    allow_origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",")] if settings.ALLOW_ORIGINS else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    # Observability middlewares
    app.add_middleware(CorrelationIdMiddleware)  # Adds/propagates X-Request-Id
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PromMiddleware)       # Records req/latency metrics

    app.add_exception_handler(LandhackerError, landhacker_error_handler)
    app.add_exception_handler(ValuationModelError, model_error_handler)

    # Meta routes
    @app.get("/v1/health", tags=["meta"])
    def health():
        return {"status": "ok"}

    @app.get("/v1/ping", tags=["meta"])
    def ping():
        return {"pong": True}

    if settings.PROMETHEUS_ENABLED:
        # Standard Prometheus scrape endpoint
        app.add_route("/v1/metrics", metrics_endpoint, methods=["GET"])

    # Business routes
    app.include_router(analysis_router, prefix="/api", tags=["analysis"])
    app.include_router(account_router, prefix="/api", tags=["account"])
    app.include_router(parcels_router, prefix="/api", tags=["parcels"])

    return app

app = create_app()
