import time
import uuid
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import public_router, router
from .config import settings
from .core.logging_config import setup_logging
from .employees import EmployeeDirectory
from .errors import StoreUnavailable
from .ledger import LoyaltyLedger
from .store import build_store

logger = structlog.get_logger("loyalty")


def _read_app_version() -> str:
    version_file = Path(__file__).resolve().parents[1] / "VERSION"
    try:
        value = version_file.read_text(encoding="utf-8").strip()
        return value or "0.1.0"
    except OSError:
        return "0.1.0"


def build_ledger() -> LoyaltyLedger:
    directory = EmployeeDirectory.from_file(Path(settings.LEDGER_DATA_DIR) / settings.EMPLOYEES_FILE)
    return LoyaltyLedger(build_store(settings), directory)


def create_app(ledger: LoyaltyLedger | None = None, public_host: str | None = None) -> FastAPI:
    app = FastAPI(
        title="Loyalty Ledger",
        description="Employee loyalty ledger behind the Telegram bot",
        version=_read_app_version(),
    )
    app.state.ledger = ledger or build_ledger()
    app.state.public_host = public_host or settings.PUBLIC_HOST

    @app.middleware("http")
    async def request_observability_middleware(request: Request, call_next):
        request_id = (request.headers.get("x-request-id") or "").strip() or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start) * 1000.0, 2)
            logger.error("http_request_failed", status_code=500, duration_ms=duration_ms, error=str(exc))
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error"},
                headers={"X-Request-ID": request_id},
            )

        duration_ms = round((time.perf_counter() - start) * 1000.0, 2)
        logger.info("http_request", status_code=response.status_code, duration_ms=duration_ms)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/health/ready")
    def ready():
        checks = {"store": "ok", "employees": "ok"}
        ledger_ = app.state.ledger

        try:
            ledger_.check_store()
        except StoreUnavailable:
            checks["store"] = "error"

        try:
            if not ledger_.directory.all():
                checks["employees"] = "error"
        except StoreUnavailable:
            checks["employees"] = "error"

        if "error" not in checks.values():
            return {"status": "ready", "checks": checks}
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})

    app.include_router(router)
    app.include_router(public_router)
    return app


setup_logging()
app = create_app()
