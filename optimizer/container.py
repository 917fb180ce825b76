"""
Wires the service graph. Every collaborator is constructed here and passed
down explicitly; tests build the same graph with doubles swapped in.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .catalog.client import CatalogClient
from .config import (
    DATABASE_URL, ITEM_DELAY_SEC, MUTATIONS_PER_SECOND, QUEUE_MAX_DEPTH,
    QUOTA_FAIL_OPEN, WORKER_POOL_SIZE, CATALOG_TIMEOUT_SEC
)
from .db import make_engine, make_session_factory
from .queue_manager import InMemoryWorkQueue, WorkQueue, WorkerPool
from .services.applier import MutationApplier
from .services.events import JobEventBus, log_listener, metrics_listener
from .services.generator import ContentGenerator
from .services.llm import GeminiTextModel, TextModel
from .services.optimization_log import OptimizationLog
from .services.orchestrator import CatalogFactory, JobOrchestrator
from .services.quota import QuotaGuard, UsageStore
from .services.ratelimit import RateLimiter
from .services.undo import UndoEngine


@dataclass
class Services:
    engine: Engine
    session_factory: sessionmaker
    http: httpx.AsyncClient
    events: JobEventBus
    queue: WorkQueue
    quota: QuotaGuard
    optimization_log: OptimizationLog
    applier: MutationApplier
    generator: ContentGenerator
    orchestrator: JobOrchestrator
    undo: UndoEngine
    pool: WorkerPool


def http_catalog_factory(http: httpx.AsyncClient, sleep=asyncio.sleep) -> CatalogFactory:
    def factory(tenant) -> CatalogClient:
        return CatalogClient(tenant.catalog_url, tenant.access_token, http, sleep=sleep)
    return factory


def build_services(
    database_url: str = DATABASE_URL,
    *,
    text_model: Optional[TextModel] = None,
    catalog_factory: Optional[CatalogFactory] = None,
    http: Optional[httpx.AsyncClient] = None,
    pool_size: int = WORKER_POOL_SIZE,
    queue_depth: int = QUEUE_MAX_DEPTH,
    mutations_per_second: int = MUTATIONS_PER_SECOND,
    item_delay: float = ITEM_DELAY_SEC,
    fail_open: bool = QUOTA_FAIL_OPEN,
    sleep=asyncio.sleep,
) -> Services:
    engine = make_engine(database_url)
    session_factory = make_session_factory(engine)
    http = http or httpx.AsyncClient(timeout=CATALOG_TIMEOUT_SEC)
    catalog_factory = catalog_factory or http_catalog_factory(http, sleep=sleep)

    events = JobEventBus()
    events.subscribe(log_listener)
    events.subscribe(metrics_listener)

    optimization_log = OptimizationLog(session_factory)
    quota = QuotaGuard(UsageStore(session_factory), fail_open=fail_open)
    applier = MutationApplier(RateLimiter(mutations_per_second, sleep=sleep))
    generator = ContentGenerator(text_model or GeminiTextModel(), http=http)
    orchestrator = JobOrchestrator(
        session_factory,
        catalog_factory,
        generator,
        applier,
        optimization_log,
        quota,
        events=events,
        item_delay=item_delay,
        sleep=sleep,
    )
    undo = UndoEngine(session_factory, optimization_log, applier, catalog_factory)
    queue = InMemoryWorkQueue(queue_depth)
    pool = WorkerPool(queue, orchestrator, size=pool_size)

    return Services(
        engine=engine,
        session_factory=session_factory,
        http=http,
        events=events,
        queue=queue,
        quota=quota,
        optimization_log=optimization_log,
        applier=applier,
        generator=generator,
        orchestrator=orchestrator,
        undo=undo,
        pool=pool,
    )
