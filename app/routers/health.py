# app/routers/health.py
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import settings
from app.core.logging_config import logger
from app.db import get_db

router = APIRouter(tags=["health"])


@router.get("/health", include_in_schema=True)
def health(request: Request, db: Session = Depends(get_db)):
    if settings.health_key and request.headers.get("Authorization") != settings.health_key:
        return JSONResponse(status_code=401, content={"message": "Unauthorized"})

    flags = {"dialect": db.get_bind().dialect.name, "connected": False}
    try:
        db.execute(text("SELECT 1"))
        flags["connected"] = True
    except Exception as e:
        logger.error("health_db_check_failed", error=f"{type(e).__name__}: {e}")

    headers = {"X-DB-Info": json.dumps(flags)}
    if not flags["connected"]:
        return JSONResponse(
            status_code=503,
            content={"message": "Database unavailable", "status": {"database": False}},
            headers=headers,
        )
    return JSONResponse(content={"message": "OK", "status": {"database": True}}, headers=headers)
