import logging

from fastapi import FastAPI

from fitgoals.config import settings
from fitgoals.goals.router import router as goals_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="fitgoals", version="0.1.0")
app.include_router(goals_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "goals": {
            "list": "/goals",
            "overview": "/goals/overview",
            "detail": "/goals/{id}",
            "progress": "/goals/{id}/progress",
            "deactivate": "/goals/{id}/deactivate",
            "activate": "/goals/{id}/activate",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
