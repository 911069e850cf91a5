import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import settings
from db.database import engine, Base
from auth.routes import router as auth_router
from api.user import router as user_router
from api.habits import router as habits_router
from api.routines import router as routines_router
from api.tasks import router as tasks_router
from api.moods import router as moods_router
from api.badges import router as badges_router
from api.stats import router as stats_router
from api.chat import router as chat_router

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)

settings.validate_security_configuration()
settings.validate_stats_configuration()

# Create all tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.SECURITY_HEADERS_ENABLED:
        return response
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = settings.SECURITY_CSP
    return response

# Routers
app.include_router(auth_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(habits_router, prefix="/api")
app.include_router(routines_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(moods_router, prefix="/api")
app.include_router(badges_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
app.include_router(chat_router, prefix="/api")

# Serve frontend static files (in production)
static_dir = Path(__file__).parent / "static"
if static_dir.exists():
    app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

logger.info("%s started (%s)", settings.APP_NAME, settings.ENVIRONMENT)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}
