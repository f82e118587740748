from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from exam_timer import __version__
from exam_timer.config import Settings, settings
from exam_timer.connectivity import ConnectivityMonitor
from exam_timer.db import create_engine_for, create_session_factory, init_models
from exam_timer.jobs import ExamTimerWorker
from exam_timer.logger import quiet_libraries, setup_logger
from exam_timer.routes import router
from exam_timer.services.exam_service import ExamService
from exam_timer.services.finalizer import AttemptFinalizer
from exam_timer.store import build_timer_store
from exam_timer.utils.exceptions import ExamTimerError

logger = setup_logger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application wired to the given settings."""
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager: startup and shutdown."""
        quiet_libraries()
        logger.info("🚀 Starting Exam Timer Service")
        logger.info(
            f"   Config: store={cfg.timer_store_backend}, "
            f"poll={cfg.timer_poll_interval:g}s, ttl_margin={cfg.timer_ttl_margin}s"
        )

        engine = create_engine_for(cfg.database_url)
        await init_models(engine)
        sessions = create_session_factory(engine)

        monitor = ConnectivityMonitor()
        store = build_timer_store(cfg, monitor)
        await store.connect()

        finalizer = AttemptFinalizer(sessions)
        service = ExamService(sessions, store, finalizer, ttl_margin=cfg.timer_ttl_margin)
        worker = ExamTimerWorker(
            store, monitor, service.auto_submit_exam, interval=cfg.timer_poll_interval
        )
        if cfg.scheduler_enabled:
            worker.start()

        app.state.monitor = monitor
        app.state.exam_service = service
        app.state.worker = worker

        yield

        logger.info("🛑 Shutting down service")
        await worker.stop()
        await store.close()
        await engine.dispose()

    app = FastAPI(title="Exam Timer Service", version=__version__, lifespan=lifespan)
    app.include_router(router)

    @app.exception_handler(ExamTimerError)
    async def exam_exception_handler(request: Request, exc: ExamTimerError):
        """Handle custom application exceptions."""
        logger.error(f"🔥 Application Error: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"🔥 Unexpected Error: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


app = create_app()


def run() -> None:
    """Run the service with uvicorn; SIGINT/SIGTERM trigger a graceful shutdown."""
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
