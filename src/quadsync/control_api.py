"""control_api.py - HTTP control plane for a running synchronizer.

Endpoints:
- GET  /health              liveness
- GET  /ready               503 until the synchronizer is attached
- GET  /metrics/prometheus  Prometheus exposition
- GET  /sync/status         mapping size, pending listener tasks, config
- POST /sync/settle         wait for in-flight synchronization, report counts
- GET  /facts/search        free-text lookup of indexed facts
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest

from .index import FactIndex, search_facts
from .interceptor import StoreInterceptor
from .logger import get_logger
from .sync import IndexSynchronizer, SyncReport

logger = get_logger(__name__)


def create_app(
    interceptor: StoreInterceptor,
    synchronizer: IndexSynchronizer,
    index: FactIndex,
    registry: Optional[CollectorRegistry] = None,
) -> FastAPI:
    registry = registry or REGISTRY
    app = FastAPI(title="quadsync control plane", docs_url="/docs", redoc_url=None)

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse)
    async def ready():
        if not synchronizer.attached:
            return PlainTextResponse("not attached", status_code=503)
        return "ready"

    @app.get("/metrics/prometheus")
    async def prometheus_metrics():
        return PlainTextResponse(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/sync/status")
    async def sync_status():
        return synchronizer.status()

    @app.post("/sync/settle")
    async def sync_settle():
        results = await interceptor.settled()
        reports = [result for result in results if isinstance(result, SyncReport)]
        errors = [result for result in results if isinstance(result, BaseException)]
        logger.info(f"[control_api.settle] {len(reports)} reports, {len(errors)} task errors")
        return {
            "reports": [report.summary() for report in reports],
            "task_errors": [repr(error) for error in errors],
        }

    @app.get("/facts/search")
    async def facts_search(q: str = Query(..., min_length=1), limit: int = Query(10, ge=1, le=1000)):
        try:
            documents = await search_facts(index, q, limit)
        except ValueError as ex:
            return JSONResponse({"error": str(ex)}, status_code=400)
        return [doc.to_dict() for doc in documents]

    return app
