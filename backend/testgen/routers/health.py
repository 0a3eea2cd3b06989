from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy.sql import text

from ..db import get_db
from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
	try:
		db.execute(text("SELECT 1"))
		database = "connected"
	except Exception:
		database = "error"
	return {
		"status": "ok",
		"timestamp": datetime.now(timezone.utc).isoformat(),
		"services": {"database": database},
		"gemini_configured": bool(settings.gemini_api_key),
	}
