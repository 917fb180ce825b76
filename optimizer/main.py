import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api.health import router as health_router
from .api.history import router as history_router
from .api.jobs import router as jobs_router
from .api.prometheus import router as prometheus_router
from .api.settings import router as settings_router
from .api.usage import router as usage_router
from .config import API_PREFIX, API_VERSION
from .container import Services, build_services
from .db import init_db
from .db_init import seed_from_env
from .logging_config import setup_logging
from .middleware import TracingMiddleware
from .queue_manager import requeue_active_jobs

logger = logging.getLogger("optimizer")


@asynccontextmanager
async def lifespan(application: FastAPI):
    services: Services = application.state.services
    logger.info("Catalog Optimizer starting up", extra={"component": "api", "version": API_VERSION})

    init_db(services.engine)
    seed_from_env(services.session_factory)

    # jobs left PENDING/PROCESSING by a previous process resume first
    requeue_active_jobs(services.session_factory, services.queue)
    await services.pool.start()

    logger.info("Catalog Optimizer ready", extra={
        "component": "api",
        "workers": services.pool.size
    })
    try:
        yield
    finally:
        await services.pool.stop()
        await services.http.aclose()
        logger.info("Catalog Optimizer shutting down", extra={"component": "api"})


def create_app(services: Optional[Services] = None) -> FastAPI:
    application = FastAPI(title="Catalog Optimizer API", version=API_VERSION, lifespan=lifespan)
    application.state.services = services or build_services()
    application.add_middleware(TracingMiddleware)

    for router in (health_router, jobs_router, history_router, settings_router, usage_router, prometheus_router):
        application.include_router(router, prefix=API_PREFIX)
    return application


def _build_default_app() -> FastAPI:
    setup_logging()
    return create_app()


app = _build_default_app()
