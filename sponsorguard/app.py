import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sponsorguard.application import configure_compliance_service
from sponsorguard.core.agents import get_registry
from sponsorguard.core.logging_config import configure_logging
from sponsorguard.core.settings import Settings
from sponsorguard.core.validation import AggregationInconsistency, ComplianceError
from sponsorguard.infrastructure import DisabledAIProvider, OpenAIChatClient, configure_ai_provider
from sponsorguard.routes import alerts, assessments, narratives, remediation, workers

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, json_format=settings.log_json)

    client: OpenAIChatClient | None = None
    if settings.ai_api_key:
        client = OpenAIChatClient(
            api_key=settings.ai_api_key,
            api_base=settings.ai_api_base,
            model=settings.ai_model,
            timeout=settings.ai_timeout,
        )
        configure_ai_provider(client)
    else:
        configure_ai_provider(DisabledAIProvider())
        logger.info("No AI API key configured, narratives use the template generator")

    registry = get_registry()
    configure_compliance_service(settings)
    logger.info("Compliance service ready", extra={"agents": len(registry), "model": settings.ai_model})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if client is not None:
            client.close()
            logger.info("AI provider client closed")

    app = FastAPI(title="SponsorGuard Compliance API", version="0.0.1", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ComplianceError)
    async def compliance_error_handler(request: Request, exc: ComplianceError) -> JSONResponse:
        if isinstance(exc, AggregationInconsistency):
            logger.critical("Aggregation inconsistency", extra={"path": request.url.path, "details": exc.details})
        elif exc.status_code >= 500:
            logger.error("Request failed", extra={"path": request.url.path, "code": exc.code})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(assessments.router, prefix="/api")
    app.include_router(workers.router, prefix="/api")
    app.include_router(remediation.router, prefix="/api")
    app.include_router(alerts.router, prefix="/api")
    app.include_router(narratives.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "SponsorGuard Compliance API",
                "docs": "/docs",
                "health": "/api/narratives/agents",
            }
        )

    return app


app = create_app()
