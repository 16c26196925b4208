import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, get_db, ensure_schema
from .cleanup import purge_idle_sessions
from .settings import settings
from .routers import auth
from .routers import curriculums
from .routers import quests
from .routers import mentor
from .routers import projects

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Betty API")
app.include_router(auth.router)
app.include_router(curriculums.router)
app.include_router(quests.router)
app.include_router(mentor.router)
app.include_router(projects.router)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"flowup_configured": bool(settings.flowup_api_url and settings.flowup_api_token),
	}


def _purge_once() -> None:
	db = next(get_db())
	try:
		removed = purge_idle_sessions(db)
		if removed:
			logger.info("Purged %d idle sessions", removed)
	except Exception:
		logger.exception("Session purge failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_purge_once()


@app.on_event("startup")
async def startup_event():
	Base.metadata.create_all(bind=engine)
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	_purge_once()
	asyncio.create_task(_cleanup_watcher())
