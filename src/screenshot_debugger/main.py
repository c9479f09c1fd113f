"""
Screenshot Debugger HTTP Application
====================================

FastAPI front end over a DebuggerService.

Endpoints:
    GET    /                                 - Service information
    GET    /health                           - Liveness probe
    POST   /session                          - Load an analysis document (JSON body)
    GET    /session                          - Loaded session metadata
    GET    /stats                            - Aggregate discrepancy statistics
    GET    /results                          - Filtered view (+ fallback flag)
    GET    /results/{index}                  - One result by external index
    GET    /results/{index}/discrepancies    - Classified discrepancies
    PUT    /filters                          - Replace filter criteria
    DELETE /filters                          - Clear filter criteria
    POST   /navigation/{action}              - next | previous | first | last
    POST   /navigation/jump/{index}          - Select result by external index
    GET    /current                          - Selected result with discrepancies
    GET    /screenshots/{index}              - Screenshot as PNG
    GET    /export.csv                       - Full-session CSV export

Error Mapping:
    AnalysisParseError  -> 422
    NoSessionError      -> 409
    ResultNotFoundError -> 404
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from screenshot_debugger.config import Settings, load_config, setup_logging
from screenshot_debugger.ingest import AnalysisParseError
from screenshot_debugger.models import FilterCriteria
from screenshot_debugger.service import DebuggerService, NoSessionError, ResultNotFoundError
from screenshot_debugger.session import FilterOutcome


logger = logging.getLogger(__name__)


def _outcome_payload(outcome: FilterOutcome, position: int) -> dict:
    return {
        "fallback": outcome.fallback,
        "matched": outcome.matched,
        "count": len(outcome),
        "position": position,
        "indexes": [result.index for result in outcome.results],
    }


def create_app(settings: Optional[Settings] = None, service: Optional[DebuggerService] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded settings (defaults when None)
        service: Service to expose; a fresh one is built when None
    """
    settings = settings or Settings()
    service = service or DebuggerService(settings)
    startup_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Stop the service's prefetch worker on shutdown."""
        yield
        service.close()
        logger.info("Screenshot prefetch worker stopped")

    app = FastAPI(
        title="Screenshot Debugger",
        description="Three-way comparison of ML inference, post-processing and database records",
        version=settings.app.version,
        lifespan=lifespan,
    )
    app.state.service = service

    # =========================================================================
    # Error Mapping
    # =========================================================================

    @app.exception_handler(AnalysisParseError)
    async def parse_error(request: Request, exc: AnalysisParseError) -> JSONResponse:
        logger.warning(f"Rejected analysis document: {exc}")
        return JSONResponse({"detail": str(exc)}, status_code=422)

    @app.exception_handler(NoSessionError)
    async def no_session(request: Request, exc: NoSessionError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.exception_handler(ResultNotFoundError)
    async def not_found(request: Request, exc: ResultNotFoundError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=404)

    # =========================================================================
    # Service Endpoints
    # =========================================================================

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        session = service.session
        return JSONResponse({
            "service": settings.app.name,
            "version": settings.app.version,
            "status": "running",
            "session_loaded": session is not None,
            "storage_configured": service.store.configured,
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe: always 200 while the process runs."""
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - startup_time, 1),
        })

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post("/session")
    async def load_session(request: Request) -> JSONResponse:
        """Load an analysis document from the request body."""
        body = await request.body()
        session = service.load_json(body)
        return JSONResponse({
            "session": session.metadata.model_dump(mode="json"),
            "results": len(session),
            "statistics": service.statistics().to_dict(),
        })

    @app.get("/session")
    async def get_session() -> JSONResponse:
        session = service.require_session()
        return JSONResponse({
            "session": session.metadata.model_dump(mode="json"),
            "results": len(session),
        })

    @app.get("/stats")
    async def stats() -> JSONResponse:
        return JSONResponse(service.statistics().to_dict())

    # =========================================================================
    # Result Endpoints
    # =========================================================================

    @app.get("/results")
    async def results() -> JSONResponse:
        """Filtered view with the fallback flag."""
        service.require_session()
        outcome = service.collection.outcome
        payload = _outcome_payload(outcome, service.collection.position)
        payload["criteria"] = service.collection.criteria.model_dump()
        payload["results"] = [result.model_dump(mode="json") for result in outcome.results]
        return JSONResponse(payload)

    @app.get("/results/{index}")
    async def result(index: int) -> JSONResponse:
        return JSONResponse(service.result(index).model_dump(mode="json"))

    @app.get("/results/{index}/discrepancies")
    async def discrepancies(index: int) -> JSONResponse:
        return JSONResponse([d.model_dump(mode="json") for d in service.discrepancies(index)])

    # =========================================================================
    # Filter and Navigation Endpoints
    # =========================================================================

    @app.put("/filters")
    async def put_filters(criteria: FilterCriteria) -> JSONResponse:
        outcome = service.set_filter(criteria)
        return JSONResponse(_outcome_payload(outcome, service.collection.position))

    @app.delete("/filters")
    async def delete_filters() -> JSONResponse:
        outcome = service.clear_filters()
        return JSONResponse(_outcome_payload(outcome, service.collection.position))

    @app.post("/navigation/jump/{index}")
    async def jump(index: int) -> JSONResponse:
        found = service.jump_to_index(index)
        return JSONResponse({"found": found, **service.current_view().to_dict()})

    @app.post("/navigation/{action}")
    async def navigate(action: str) -> JSONResponse:
        try:
            moved = service.navigate(action)
        except ValueError as e:
            return JSONResponse({"detail": str(e)}, status_code=400)
        return JSONResponse({"moved": moved, **service.current_view().to_dict()})

    @app.get("/current")
    async def current() -> JSONResponse:
        return JSONResponse(service.current_view().to_dict())

    # =========================================================================
    # Screenshot and Export Endpoints
    # =========================================================================

    @app.get("/screenshots/{index}")
    def screenshot(index: int, boxes: Optional[bool] = None) -> Response:
        """Screenshot PNG; a placeholder image when it can not be fetched."""
        return Response(content=service.screenshot_png(index, show_boxes=boxes), media_type="image/png")

    @app.get("/export.csv")
    async def export_csv() -> Response:
        filename, text = service.export_csv()
        return Response(
            content=text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = load_config()
    setup_logging(settings)
    logger.info(f"Starting {settings.app.name} {settings.app.version}")

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
