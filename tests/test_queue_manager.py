import asyncio

import pytest

from optimizer.db import session_scope
from optimizer.enums import JobStatus, JobType
from optimizer.models.job import Job
from optimizer.queue_manager import InMemoryWorkQueue, QueueFullError, requeue_active_jobs
from optimizer.services.orchestrator import JobPayload

from tests.conftest import OTHER_TENANT_ID, TENANT_ID
from tests.fakes import FakeCatalog, StubGenerator, make_item


def test_queue_rejects_when_full():
    queue = InMemoryWorkQueue(max_depth=1)
    queue.put(JobPayload(tenant_id=TENANT_ID, job_type=JobType.TITLE_DESC))

    with pytest.raises(QueueFullError):
        queue.put(JobPayload(tenant_id=OTHER_TENANT_ID, job_type=JobType.TITLE_DESC))
    assert queue.qsize() == 1


def test_worker_pool_drains_queue(make_services):
    catalog = FakeCatalog([make_item("p1"), make_item("p2")])
    services = make_services(catalog=catalog, generator=StubGenerator(), pool_size=2)

    async def main():
        services.queue.put(JobPayload(tenant_id=TENANT_ID, job_type=JobType.TITLE_DESC, job_id="job-a"))
        services.queue.put(JobPayload(tenant_id=OTHER_TENANT_ID, job_type=JobType.TITLE_DESC,
                                      item_ids=["p2"], job_id="job-b"))
        await services.pool.start()
        await asyncio.wait_for(services.queue.queue.join(), timeout=5)
        await services.pool.stop()

    asyncio.run(main())

    with services.session_factory() as db:
        states = {job.id: job.status for job in db.query(Job).all()}
    assert states == {"job-a": JobStatus.COMPLETED.value, "job-b": JobStatus.COMPLETED.value}
    assert services.pool.workers == []


def test_active_jobs_are_requeued_on_startup(make_services):
    services = make_services(catalog=FakeCatalog([]), generator=StubGenerator())
    with session_scope(services.session_factory) as db:
        db.add(Job(id="job-pending", tenant_id=TENANT_ID, type=JobType.ALT_TEXT.value,
                   status=JobStatus.PENDING.value, args={"tone": "FUN", "item_ids": ["p1"]}))
        db.add(Job(id="job-done", tenant_id=OTHER_TENANT_ID, type=JobType.TITLE_DESC.value,
                   status=JobStatus.COMPLETED.value, args={}))
    queue = InMemoryWorkQueue()

    assert requeue_active_jobs(services.session_factory, queue) == 1

    payload = queue.queue.get_nowait()
    assert payload.job_id == "job-pending"
    assert payload.job_type == JobType.ALT_TEXT
    assert payload.tone == "FUN"
    assert payload.item_ids == ["p1"]


class BlockingGenerator(StubGenerator):
    """Holds the first generation until released."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, field, item, tone=None, custom_instructions=None, image=None):
        self.started.set()
        await self.release.wait()
        return await super().generate(field, item, tone, custom_instructions, image)


def test_stop_finishes_current_item_and_leaves_job_resumable(make_services):
    catalog = FakeCatalog([make_item(f"p{i}") for i in range(1, 5)])
    services = make_services(catalog=catalog, pool_size=1)

    async def main():
        generator = BlockingGenerator()
        services.orchestrator.generator = generator
        services.queue.put(JobPayload(tenant_id=TENANT_ID, job_type=JobType.TITLE_DESC, job_id="job-a"))
        await services.pool.start()
        await asyncio.wait_for(generator.started.wait(), timeout=5)
        stopping = asyncio.create_task(services.pool.stop())
        await asyncio.sleep(0)
        generator.release.set()
        await asyncio.wait_for(stopping, timeout=5)

    asyncio.run(main())

    logged = [e["item_id"] for e in services.optimization_log.history(TENANT_ID)["entries"]]
    assert [item_id for item_id, _ in catalog.mutations] == ["p1"]
    assert sorted(logged) == ["p1", "p1"]
    with services.session_factory() as db:
        job = db.get(Job, "job-a")
    assert job.status == JobStatus.PROCESSING.value
    assert job.processed_items == 1
    assert services.pool.workers == []

    services.orchestrator.generator = StubGenerator()
    services.orchestrator.stopping = False
    asyncio.run(services.orchestrator.run(JobPayload(tenant_id=TENANT_ID, job_type=JobType.TITLE_DESC,
                                                     job_id="job-a")))

    assert [item_id for item_id, _ in catalog.mutations] == ["p1", "p2", "p3", "p4"]
    with services.session_factory() as db:
        job = db.get(Job, "job-a")
    assert job.status == JobStatus.COMPLETED.value
    assert (job.processed_items, job.total_items) == (4, 4)
