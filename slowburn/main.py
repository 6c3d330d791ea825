import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from loguru import logger

from slowburn.api.checklist import router as checklist_router
from slowburn.config.settings import settings
from slowburn.core.logger import setup_logger
from slowburn.db.session import init_db

setup_logger(level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Ensure database tables exist before serving requests.

    Note: FastAPI requires async for lifespan context manager,
    even if no await operations are used.
    """
    logger.info("Ensuring database tables exist")
    init_db()
    logger.info("Database tables verified")

    await asyncio.sleep(0)
    yield

    logger.info("Slowburn shutting down")


app = FastAPI(title="Slowburn", lifespan=lifespan)

app.include_router(checklist_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response


@app.get("/", response_class=HTMLResponse)
def root():
    return """
    <html>
        <head>
            <title>Slowburn</title>
        </head>
        <body>
            <h1>Slowburn</h1>
            <p>Daily workout and mobility checklists with an intensity heatmap</p>
            <h2>Available Endpoints:</h2>
            <ul>
                <li><a href="/docs">API Documentation (Swagger)</a></li>
                <li><a href="/redoc">API Documentation (ReDoc)</a></li>
                <li><a href="/api/today-plan">Today's workout</a></li>
                <li><a href="/api/today-mobility">Today's mobility</a></li>
                <li><a href="/api/heatmap">Heatmap</a></li>
            </ul>
        </body>
    </html>
    """
