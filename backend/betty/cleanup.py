from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AuthSession
from .settings import settings


def purge_idle_sessions(db: Session, *, now: datetime | None = None) -> int:
	# Sessions untouched for longer than the idle window can no longer authenticate
	threshold = (now or datetime.utcnow()) - timedelta(days=settings.session_idle_days)
	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	db.commit()
	return res.rowcount or 0
