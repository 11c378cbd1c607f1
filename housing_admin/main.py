import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .baas.client import get_baas
from .baas.provider import BaaSError
from .config import settings
from .logging import RequestIdMiddleware, setup_logging
from .routes.catalog import router as catalog_router
from .routes.checkout_requests import router as checkout_requests_router
from .routes.compliance import router as compliance_router
from .routes.dashboard import router as dashboard_router
from .routes.files import router as files_router
from .routes.rooms import router as rooms_router
from .routes.system_users import router as system_users_router
from .services.scheduler import CheckoutSweeper


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(rooms_router)
    app.include_router(compliance_router)
    app.include_router(catalog_router)
    app.include_router(checkout_requests_router)
    app.include_router(system_users_router)
    app.include_router(dashboard_router)
    app.include_router(files_router)

    # Backend failures that escaped a route's own handling
    @app.exception_handler(BaaSError)
    async def _baas_error(request: Request, exc: BaaSError):
        logger.error("baas_error_unhandled", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=502, content={"detail": exc.message})

    @app.get("/health")
    def health():
        return {"status": "ok", "provider": settings.baas_provider}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    sweeper = CheckoutSweeper(lambda: app.dependency_overrides.get(get_baas, get_baas)())
    app.state.checkout_sweeper = sweeper

    @app.on_event("startup")
    def _startup():
        logger.info("startup", provider=settings.baas_provider, environment=settings.environment)
        if settings.checkout_sweep_enabled:
            sweeper.start()

    @app.on_event("shutdown")
    def _shutdown():
        sweeper.stop()

    return app


app = create_app()
