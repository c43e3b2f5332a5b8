from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from childwatch.api import routes_health, routes_monitoring, routes_notifications, routes_parents
from childwatch.core.config import get_settings
from childwatch.core.logger import get_logger
from childwatch.services.classifier_client import get_classifier_client
from childwatch.services.push_dispatcher import get_push_dispatcher
from childwatch.workers.background_tasks import get_task_runner

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await get_task_runner().start()
    if not get_classifier_client().is_configured:
        log.warning("OPENAI_API_KEY not set; moderation will use keyword fallback only")
    try:
        yield
    finally:
        # Shutdown
        await get_task_runner().stop()
        for close in (get_classifier_client().aclose, get_push_dispatcher().aclose):
            try:
                await close()
            except Exception:
                log.exception("Failed to close HTTP client")


app = FastAPI(
    title="ChildWatch API",
    description="Content moderation and parent alerts for child device activity",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(routes_monitoring.router, prefix="/monitoring", tags=["Monitoring"])
app.include_router(routes_notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(routes_parents.router, prefix="/parents", tags=["Parents"])
app.include_router(routes_health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {"status": "ChildWatch backend running"}
