"""Health check endpoint for monitoring and readiness checks."""

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
import time
from typing import Dict, Any

from tftstat.services.crawler import status

app = FastAPI(title="tftstat Health Check")

# Store crawler start time
START_TIME = time.time()


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSON with status, uptime and the regions that completed a cycle
    """
    uptime = int(time.time() - START_TIME)
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": uptime,
        "service": "tftstat-crawler",
        "regions": sorted(status.snapshot()),
    })


@app.get("/readiness")
async def readiness_check() -> Response:
    """
    Kubernetes-style readiness check.

    Returns:
        200 once at least one region finished a crawl cycle
        503 before that
    """
    if status.snapshot():
        return Response(status_code=200, content="Ready")
    return Response(status_code=503, content="Not ready: no cycle completed yet")


@app.get("/liveness")
async def liveness_check() -> Response:
    """
    Kubernetes-style liveness check.

    Returns:
        200 if service is alive
    """
    return Response(status_code=200, content="Alive")


@app.get("/metrics")
async def metrics() -> Dict[str, Any]:
    """
    Last completed cycle per region (players, new / repeat / failed matches).
    """
    uptime = int(time.time() - START_TIME)
    return {
        "uptime_seconds": uptime,
        "start_time": START_TIME,
        "regions": status.snapshot(),
    }
