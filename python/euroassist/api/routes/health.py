"""Health check endpoint."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check.

    Returns 200 if the process is running. Does not touch the database or the
    LLM provider.
    """
    return {"status": "ok"}
