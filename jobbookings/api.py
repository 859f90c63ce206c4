"""
FastAPI server for the bookings API. Run with run_api_server(settings).
Endpoints: GET/POST /api/bookings, PUT/DELETE /api/bookings/by-date/<date>/<index>,
PUT/DELETE /api/bookings/by-id/<id>, GET /api/health.
Docs: http://<host>:<port>/docs
"""
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .database import configure
from .dispatcher import dispatch, dispatch_post, error_result
from .env import Settings
from .errors import InvalidPayload
from .logger import get_logger
from .manager import BookingManager


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    operations: Dict[str, Any] = {}


def _respond(outcome) -> JSONResponse:
    status, result = outcome
    return JSONResponse(status_code=status, content=result)


def create_app(manager: Optional[BookingManager] = None) -> FastAPI:
    """Create FastAPI app whose routes share one BookingManager."""
    app = FastAPI(title="Job Bookings API", description="Jobs booked by date", version=__version__)
    bookings = manager or BookingManager()

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
        return _respond(error_result(InvalidPayload(f"Invalid request: {fields}")))

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(operations=get_logger().get_metrics())

    @app.get("/api/bookings")
    def list_bookings() -> JSONResponse:
        """All bookings grouped by date, each item carrying its id."""
        return _respond(dispatch("list", {}, bookings))

    @app.post("/api/bookings")
    def post_booking(body: Any = Body(...)) -> JSONResponse:
        """Typed request: {"type": "add" | "update" | "delete", ...}."""
        return _respond(dispatch_post(body, bookings))

    @app.put("/api/bookings/by-date/{date_key}/{index}")
    def update_by_index(date_key: str, index: int, job: Dict[str, Any] = Body(..., embed=True)) -> JSONResponse:
        return _respond(dispatch("update_by_index", {"date_key": date_key, "index": index, "job": job}, bookings))

    @app.delete("/api/bookings/by-date/{date_key}/{index}")
    def delete_by_index(date_key: str, index: int) -> JSONResponse:
        return _respond(dispatch("delete_by_index", {"date_key": date_key, "index": index}, bookings))

    @app.put("/api/bookings/by-id/{booking_id}")
    def update_by_id(
        booking_id: str,
        job: Dict[str, Any] = Body(..., embed=True),
        date_key: Optional[str] = Body(None, embed=True),
    ) -> JSONResponse:
        payload = {"id": booking_id, "job": job, "date_key": date_key}
        return _respond(dispatch("update_by_id", payload, bookings))

    @app.delete("/api/bookings/by-id/{booking_id}")
    def delete_by_id(booking_id: str) -> JSONResponse:
        return _respond(dispatch("delete_by_id", {"id": booking_id}, bookings))

    return app


def run_api_server(settings: Settings) -> None:
    """Serve the API with uvicorn in the foreground."""
    import uvicorn

    configure(settings.database_url)
    app = create_app()
    logger = get_logger()
    logger.info(f"API server listening at http://{settings.api_host}:{settings.api_port} (docs at /docs)")
    try:
        uvicorn.run(app, host=settings.api_host, port=settings.api_port)
    finally:
        logger.log_metrics_summary()
