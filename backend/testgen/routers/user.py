from __future__ import annotations
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..limits import refresh, upgrade_to_paid, usage_summary
from ..models import AuthUser
from .auth import get_current_account

router = APIRouter(prefix="/user", tags=["user"])
logger = logging.getLogger(__name__)


@router.get("/limits")
def get_limits(account: AuthUser = Depends(get_current_account), db: Session = Depends(get_db)):
	refresh(account, datetime.utcnow())
	db.add(account)
	db.commit()
	return usage_summary(account)


@router.post("/upgrade-to-paid")
def upgrade(account: AuthUser = Depends(get_current_account), db: Session = Depends(get_db)):
	upgrade_to_paid(account, datetime.utcnow())
	db.add(account)
	db.commit()
	logger.info("Upgraded %s to paid until %s", account.username, account.expiry_date)
	return {
		"success": True,
		"message": "User upgraded to paid status",
		"usage": usage_summary(account),
	}
