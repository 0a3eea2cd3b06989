import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, get_db, ensure_schema
from .cleanup import downgrade_expired_subscriptions
from .settings import settings
from .routers import health
from .routers import auth
from .routers import generate
from .routers import tests
from .routers import user

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Test Generation API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(generate.router)
app.include_router(tests.router)
app.include_router(user.router)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


def _run_subscription_cleanup() -> None:
	db = next(get_db())
	try:
		downgrade_expired_subscriptions(db)
	except Exception:
		logger.exception("Subscription cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Startup already ran one pass; then daily
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_subscription_cleanup()


@app.on_event("startup")
async def startup_event():
	Base.metadata.create_all(bind=engine)
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema check failed")
	_run_subscription_cleanup()
	asyncio.create_task(_cleanup_watcher())
