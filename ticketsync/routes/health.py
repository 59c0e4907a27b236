"""
Health check endpoints

- GET /api/v1/health - Basic health check
- GET /api/v1/health/dependencies - Realtime database and LLM provider status
"""
import time
from datetime import datetime, timezone
from typing import Dict, Optional
from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field
import httpx
import asyncio

from ticketsync import __version__
from ticketsync.config import get_settings
from ticketsync.services.store import TICKET_SEQUENCE_PATH, TicketStore
from ticketsync.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])

# Application start time for uptime calculation
APP_START_TIME = time.time()


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")
    store_configured: bool = Field(..., description="Realtime database initialised")


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str
    status: str = Field(..., description="Status: healthy, degraded, unhealthy")
    latency_ms: Optional[float] = None
    error_message: Optional[str] = None


class DependencyHealth(BaseModel):
    """Dependency health check response"""
    overall_status: str
    dependencies: Dict[str, DependencyStatus]
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# Dependency Check Functions
# ============================================================================

async def check_store(store: Optional[TicketStore]) -> DependencyStatus:
    """Read one small node from the realtime database"""
    if store is None:
        return DependencyStatus(
            name="firebase",
            status="unhealthy",
            error_message="Realtime database not configured"
        )

    try:
        start = time.time()
        await asyncio.wait_for(store.get(TICKET_SEQUENCE_PATH), timeout=5.0)
        latency = (time.time() - start) * 1000
        return DependencyStatus(name="firebase", status="healthy", latency_ms=round(latency, 2))
    except asyncio.TimeoutError:
        logger.error("Firebase health check timed out")
        return DependencyStatus(
            name="firebase",
            status="unhealthy",
            error_message="Request timed out after 5 seconds"
        )
    except Exception as e:
        logger.error(f"Firebase health check failed: {e}")
        return DependencyStatus(name="firebase", status="unhealthy", error_message=str(e))


async def check_openai_api() -> DependencyStatus:
    """Check OpenAI API connectivity"""
    try:
        if not settings.openai_api_key:
            return DependencyStatus(
                name="openai_api",
                status="degraded",
                error_message="API key not configured"
            )

        start = time.time()
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(
                "https://api.openai.com/v1/models",
                headers={"Authorization": f"Bearer {settings.openai_api_key}"}
            )
            response.raise_for_status()

        latency = (time.time() - start) * 1000
        return DependencyStatus(name="openai_api", status="healthy", latency_ms=round(latency, 2))

    except httpx.TimeoutException:
        logger.error("OpenAI API health check timed out")
        return DependencyStatus(
            name="openai_api",
            status="unhealthy",
            error_message="Request timed out after 5 seconds"
        )
    except httpx.HTTPStatusError as e:
        logger.error(f"OpenAI API health check failed: {e}")
        return DependencyStatus(
            name="openai_api",
            status="unhealthy",
            error_message=f"HTTP {e.response.status_code}: {str(e)}"
        )
    except Exception as e:
        logger.error(f"OpenAI API health check failed: {e}")
        return DependencyStatus(name="openai_api", status="unhealthy", error_message=str(e))


def determine_overall_status(dependencies: Dict[str, DependencyStatus]) -> str:
    """
    Critical service: firebase. Anything else unhealthy or degraded only
    degrades the overall status.
    """
    firebase = dependencies.get("firebase")
    if firebase is not None and firebase.status == "unhealthy":
        return "unhealthy"

    if any(dep.status in ["degraded", "unhealthy"] for dep in dependencies.values()):
        return "degraded"
    return "healthy"


# ============================================================================
# API Endpoints
# ============================================================================

@router.get("", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def basic_health_check(request: Request) -> HealthResponse:
    """
    Basic health check; does not contact external services.
    """
    store_configured = getattr(request.app.state, "store", None) is not None
    return HealthResponse(
        status="healthy" if store_configured else "degraded",
        version=__version__,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
        store_configured=store_configured
    )


@router.get("/dependencies", response_model=DependencyHealth, status_code=status.HTTP_200_OK)
async def dependency_health_check(request: Request) -> DependencyHealth:
    """
    Check the realtime database and the OpenAI API in parallel.
    """
    store = getattr(request.app.state, "store", None)
    firebase, openai_api = await asyncio.gather(check_store(store), check_openai_api())
    dependencies = {"firebase": firebase, "openai_api": openai_api}

    unhealthy = [name for name, dep in dependencies.items() if dep.status == "unhealthy"]
    if unhealthy:
        logger.warning(f"Unhealthy dependencies: {', '.join(unhealthy)}")

    return DependencyHealth(
        overall_status=determine_overall_status(dependencies),
        dependencies=dependencies
    )
