from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import time
import structlog

from mediquiz import settings
from mediquiz.db import create_db_engine
from mediquiz.middleware.rate_limit import limiter
from mediquiz.notifications import ConnectionManager
from mediquiz.routers import attempts as attempts_router
from mediquiz.routers import auth as auth_router
from mediquiz.routers import content as content_router
from mediquiz.routers import profile as profile_router
from mediquiz.routers import quizzes as quizzes_router
from mediquiz.services.llm import QuizGenerator
from mediquiz.services.logging import configure_logging, log_api_request
from mediquiz.services.monitoring import HealthChecker, get_metrics, REQUEST_COUNT, REQUEST_DURATION
from mediquiz.services.storage import QuizStore, SqlQuizStore

logger = structlog.get_logger()


def create_app(store: Optional[QuizStore] = None, generator: Optional[QuizGenerator] = None) -> FastAPI:
    """Build the API around explicit collaborators.

    Without a ``store`` the app persists to DATABASE_URL; without a
    ``generator`` one is created from OPENAI_API_KEY on first use.
    Run with ``uvicorn mediquiz.main:create_app --factory``.
    """
    configure_logging()

    app = FastAPI(
        title="MediQuiz",
        description="AI-generated medical quizzes with server-side scoring",
        version="1.0.0"
    )
    app.state.store = store if store is not None else SqlQuizStore(create_db_engine(settings.DATABASE_URL))
    app.state.generator = generator
    app.state.manager = ConnectionManager()
    health_checker = HealthChecker(app.state.store, lambda: app.state.generator is not None or bool(settings.OPENAI_API_KEY))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        log_api_request(request)

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()
        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(process_time)

        response.response_time = process_time
        log_api_request(request, response)
        return response

    # ----------------- Health & Monitoring -----------------
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return health_checker.get_health_status()

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return get_metrics()

    # ----------------- Routers -----------------
    app.include_router(auth_router.router)
    app.include_router(content_router.router)
    app.include_router(quizzes_router.router)
    app.include_router(attempts_router.router)
    app.include_router(profile_router.router)

    # ----------------- Generation progress -----------------
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        client_id = websocket.query_params.get("client_id")
        if not client_id:
            await websocket.close()
            return
        manager = websocket.app.state.manager
        await manager.connect(client_id, websocket)
        try:
            while True:
                # keep the connection open; incoming messages are ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(client_id, websocket)

    logger.info("app_created", store=type(app.state.store).__name__)
    return app
