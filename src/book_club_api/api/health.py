"""Liveness and database health check."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from .dependencies import SettingsDep

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health(request: Request, settings: SettingsDep):
    database_ok = request.app.state.db_manager.verify_connection()
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            **settings.server_info,
        },
    )
