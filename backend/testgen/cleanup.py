from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from .limits import apply_expiry
from .models import AuthUser

logger = logging.getLogger(__name__)


def downgrade_expired_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
	now = now or datetime.utcnow()
	downgraded = 0
	expired = (
		db.query(AuthUser)
		.filter(AuthUser.is_paid.is_(True), AuthUser.expiry_date.isnot(None), AuthUser.expiry_date < now)
		.all()
	)
	for user in expired:
		if apply_expiry(user, now):
			downgraded += 1
	db.commit()
	if downgraded:
		logger.info("Downgraded %s expired subscriptions", downgraded)
	return downgraded
