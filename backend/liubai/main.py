import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from liubai.api.v1 import auth, check_in, coach_messages, dashboard, settings as settings_api, trends

# Ensure app loggers (check-in replies, summaries, weekly review) print to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("liubai").setLevel(logging.DEBUG)
from liubai.config import settings
from liubai.db.session import async_session_maker, init_db
from liubai.services.reply_generator import GeminiReplyGenerator
from liubai.services.reply_orchestrator import ReplyOrchestrator
from liubai.services.weekly_review import run_weekly_review_job
from prometheus_client import make_asgi_app

logger = logging.getLogger("liubai.main")

scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app_env == "production":
        if not settings.google_gemini_api_key:
            logger.warning("GOOGLE_GEMINI_API_KEY is not set; every check-in will get a fallback reply")
        settings.validate_jwt_config()
    await init_db()
    orchestrator = ReplyOrchestrator(
        async_session_maker,
        GeminiReplyGenerator(settings.google_gemini_api_key, settings.gemini_model),
    )
    app.state.reply_orchestrator = orchestrator

    if settings.weekly_review_enabled:
        scheduler.add_job(
            run_weekly_review_job,
            "cron",
            day_of_week=settings.weekly_review_cron_day_of_week,
            hour=settings.weekly_review_cron_hour,
            minute=0,
        )
    scheduler.start()
    yield
    scheduler.shutdown()
    # Let in-flight check-ins finish writing before the engine goes away
    await orchestrator.wait_idle()


limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])

app = FastAPI(
    title="Liubai API",
    description="Energy check-in journal: streamed coach replies, daily summaries, weekly reviews",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth.router, prefix="/api/v1")
app.include_router(check_in.router, prefix="/api/v1")
app.include_router(trends.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(coach_messages.router, prefix="/api/v1")
app.include_router(settings_api.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
