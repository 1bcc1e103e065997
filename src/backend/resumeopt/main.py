"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resumeopt.api.routes import router
from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.core.errors import AppError
from resumeopt.services.analysis_service import AnalysisOrchestrator
from resumeopt.services.cache_service import AnalysisCache
from resumeopt.services.extraction_service import TextExtractor
from resumeopt.services.llm_service import LLMAnalyzer
from resumeopt.services.payment_service import PaymentReconciler
from resumeopt.services.review_service import ReviewService
from resumeopt.services.storage_service import FileStorage
from resumeopt.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

DESCRIPTION = """
Resume optimization backend. Upload a resume, get a free ATS check, and pay for
deeper analysis.

## Tiers
- **Basic ATS check**: free, rule-based, runs on upload
- **Detailed ATS report**: AI analysis, one ATS credit or premium
- **Job optimization**: AI match against a stored job description, one optimization credit or premium
- **Analyze changes**: editor preview, limited clicks per optimization purchase for pay-per-use customers
- **Professional review**: human review ordered through checkout
- **Subscription**: premium, unlimited analyses

Payments are reconciled from signed provider webhooks.
"""


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    extractor=None,
    analyzer=None,
    storage=None,
    payment_gateway=None,
) -> FastAPI:
    """Build the app with its collaborators. Anything not passed is built from settings."""
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = database or Database(settings.database_url)
    cache = None
    if analyzer is None:
        cache = AnalysisCache(settings.redis_url, settings.analysis_cache_ttl)
        analyzer = LLMAnalyzer(settings, cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if cache is not None:
            await cache.close()
        await database.dispose()

    app = FastAPI(
        title="Resume Optimizer API",
        description=DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Resumes", "description": "Upload resumes and manage their text and job description"},
            {"name": "Analysis", "description": "Credit-gated AI analyses"},
            {"name": "Account", "description": "Subscription and credit balances"},
            {"name": "Payments", "description": "Checkout and provider webhooks"},
            {"name": "Admin", "description": "Professional review workflow"},
        ],
    )

    app.state.settings = settings
    app.state.database = database
    app.state.orchestrator = AnalysisOrchestrator(
        database=database,
        extractor=extractor or TextExtractor(),
        analyzer=analyzer,
        storage=storage or FileStorage(settings.upload_dir),
        settings=settings,
    )
    app.state.reconciler = PaymentReconciler(database, settings)
    app.state.review_service = ReviewService(database)
    app.state.payment_gateway = payment_gateway or StripeGateway(settings)

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        body = {"error": exc.code, "message": exc.message}
        for key, value in exc.extra.items():
            body[_camel(key)] = value
        if settings.expose_error_details and exc.__cause__ is not None:
            body["detail"] = str(exc.__cause__)
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health():
        """Health check endpoint used by the load balancer."""
        return {"status": "ok"}

    return app


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)
