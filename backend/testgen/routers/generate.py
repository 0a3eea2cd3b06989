from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient
from ..generation import generate_questions
from ..limits import (
	LimitExceededError,
	TestLimitReachedError,
	check_generation_allowed,
	check_test_creation_allowed,
	record_generation_usage,
	record_test_created,
	refresh,
	usage_summary,
)
from ..models import AuthUser, UnifiedTest
from ..schemas import QuestionKind, QuestionRecord
from ..settings import settings
from .auth import get_current_account

router = APIRouter(prefix="/generate", tags=["generation"])
logger = logging.getLogger(__name__)


async def get_model_client():
	# Yields None without a key; the handler reports 503 once the request itself is valid
	if not settings.gemini_api_key:
		yield None
		return
	client = GeminiClient()
	try:
		yield client
	finally:
		await client.aclose()


class UnifiedTestRequest(BaseModel):
	topic: Optional[str] = None
	reference: Optional[str] = None
	mcq_count: int = Field(default=0, ge=0, le=50)
	qa_count: int = Field(default=0, ge=0, le=50)
	use_same_reference: bool = False
	questions: List[QuestionRecord] = Field(default_factory=list)
	# Publishing
	publish_test: bool = False
	test_name: Optional[str] = None
	time_limit: Optional[int] = Field(default=None, ge=1)
	is_public: bool = True
	show_results: bool = True
	allow_anonymous: bool = True
	access_list_id: Optional[str] = None


def new_test_link() -> str:
	return f"test-{uuid.uuid4().hex[:8]}"


def _publish(db: Session, account: AuthUser, req: UnifiedTestRequest, topic: str, questions: List[QuestionRecord]) -> UnifiedTest:
	test = UnifiedTest(
		test_link=new_test_link(),
		test_name=req.test_name.strip(),
		topic=topic,
		description=req.reference,
		questions_json=json.dumps([q.model_dump(mode="json", exclude_none=True) for q in questions]),
		created_by=account.username,
		time_limit=req.time_limit or 30,
		is_public=req.is_public,
		show_results=req.show_results,
		allow_anonymous=req.allow_anonymous,
		is_active=True,
		# Access lists only apply to private tests
		access_list_id=req.access_list_id if not req.is_public else None,
	)
	db.add(test)
	record_test_created(account)
	return test


@router.post("/unified-test")
async def generate_unified_test(
	req: UnifiedTestRequest,
	account: AuthUser = Depends(get_current_account),
	db: Session = Depends(get_db),
	client: Optional[GeminiClient] = Depends(get_model_client),
):
	topic = (req.topic or "").strip()
	if not topic:
		raise HTTPException(status_code=400, detail="Topic is required")
	if client is None:
		raise HTTPException(status_code=503, detail="GEMINI_API_KEY is not configured")
	publishing = req.publish_test and bool((req.test_name or "").strip())

	now = datetime.utcnow()
	refresh(account, now)
	try:
		check_generation_allowed(account, req.mcq_count, req.qa_count)
		if publishing:
			check_test_creation_allowed(account, now)
	except LimitExceededError as e:
		db.commit()
		raise HTTPException(status_code=403, detail={
			"error": str(e),
			"limit_reached": True,
			"upgrade_required": e.upgrade_required,
			"kind": e.kind.value,
			"remaining": e.remaining,
		})
	except TestLimitReachedError as e:
		db.commit()
		raise HTTPException(status_code=403, detail={
			"error": str(e),
			"tests_remaining": 0,
			"limit": e.limit,
			"is_paid": e.is_paid,
			"reset_date": e.reset_date.isoformat() if e.reset_date else None,
		})

	batch = await generate_questions(
		client.generate,
		topic,
		reference=req.reference,
		mcq_count=req.mcq_count,
		qa_count=req.qa_count,
		use_same_reference=req.use_same_reference,
		start_id=len(req.questions) + 1,
	)
	requested = sum(1 for n in (req.mcq_count, req.qa_count) if n > 0)
	if requested and len(batch.errors) == requested:
		db.commit()
		raise HTTPException(status_code=502, detail={
			"error": "Failed to generate questions",
			"errors": {kind.value: msg for kind, msg in batch.errors.items()},
		})

	questions = list(req.questions) + batch.questions
	mcq_generated = batch.count(QuestionKind.MULTIPLE_CHOICE)
	qa_generated = batch.count(QuestionKind.OPEN_ENDED)
	test: Optional[UnifiedTest] = None
	if publishing:
		test = _publish(db, account, req, topic, questions)
	record_generation_usage(account, mcq_generated, qa_generated)
	db.add(account)
	db.commit()

	response: Dict[str, Any] = {
		"success": True,
		"questions": [q.model_dump(mode="json", exclude_none=True) for q in questions],
		"errors": {kind.value: msg for kind, msg in batch.errors.items()},
		"fallback": [kind.value for kind in batch.fallback_kinds],
		"usage": usage_summary(account),
		"message": f"Generated {len(batch.questions)} questions successfully",
	}
	if test is not None:
		db.refresh(test)
		response["test"] = {
			"id": test.id,
			"test_name": test.test_name,
			"test_link": test.test_link,
			"topic": topic,
			"time_limit": test.time_limit,
		}
		response["message"] = f"Generated {len(batch.questions)} questions and created test successfully"
	logger.info(
		"Generated %s MCQ and %s Q&A questions for %s (published=%s)",
		mcq_generated, qa_generated, account.username, test is not None,
	)
	return response
