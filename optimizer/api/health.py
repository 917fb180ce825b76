from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter()


@router.get("/healthz", include_in_schema=False)
def healthz(request: Request):
    services = request.app.state.services
    with services.session_factory() as db:
        db.execute(text("SELECT 1"))
    return {"status": "ok", "queue_depth": services.queue.qsize(), "workers": len(services.pool.workers)}
