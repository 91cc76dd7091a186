"""FastAPI entry point for the cloth simulator."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clothsim.logging_utils import configure_root
from clothsim.models.settings import settings
from clothsim.routers import cloth

configure_root(settings.LOG_LEVEL)

app = FastAPI(title="XPBD Cloth Simulator API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS or ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.include_router(cloth.router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    """Basic health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
