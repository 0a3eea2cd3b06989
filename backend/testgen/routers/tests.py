from __future__ import annotations
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import UnifiedTest, UnifiedTestResponse
from ..schemas import QuestionRecord
from ..scoring import score_submission
from .auth import User, get_current_user, get_optional_user

router = APIRouter(prefix="/tests", tags=["tests"])
logger = logging.getLogger(__name__)


class SubmittedAnswer(BaseModel):
	question_id: str
	answer: str = ""


class SubmissionRequest(BaseModel):
	answers: List[SubmittedAnswer] = Field(default_factory=list)


class UpdateTestRequest(BaseModel):
	test_name: str
	description: Optional[str] = None
	questions: List[QuestionRecord]
	time_limit: Optional[int] = Field(default=None, ge=1)
	is_public: bool = True
	show_results: bool = True
	allow_anonymous: bool = True
	access_list_id: Optional[str] = None


class PatchTestRequest(BaseModel):
	show_results: Optional[bool] = None
	is_public: Optional[bool] = None
	is_active: Optional[bool] = None


def _questions(test: UnifiedTest, *, include_answers: bool) -> List[Dict[str, Any]]:
	questions = json.loads(test.questions_json or "[]")
	if not include_answers:
		for q in questions:
			q.pop("correct_answer", None)
	return questions


def _summary(test: UnifiedTest) -> Dict[str, Any]:
	return {
		"id": test.id,
		"test_name": test.test_name,
		"test_link": test.test_link,
		"topic": test.topic,
		"time_limit": test.time_limit,
		"is_public": test.is_public,
		"is_active": test.is_active,
		"created_at": test.created_at,
	}


def _detail(test: UnifiedTest, *, include_answers: bool) -> Dict[str, Any]:
	data = _summary(test)
	data["description"] = test.description
	data["show_results"] = test.show_results
	data["allow_anonymous"] = test.allow_anonymous
	data["questions"] = _questions(test, include_answers=include_answers)
	return data


def _active_test(db: Session, test_link: str) -> UnifiedTest:
	test = db.query(UnifiedTest).filter(UnifiedTest.test_link == test_link).first()
	if test is None or not test.is_active:
		raise HTTPException(status_code=404, detail="Test not found")
	return test


def _is_owner(test: UnifiedTest, user: Optional[User]) -> bool:
	return user is not None and user.username == test.created_by


def _owned_test(db: Session, test_id: int, user: User) -> UnifiedTest:
	test = db.get(UnifiedTest, test_id)
	if test is None or test.created_by != user.username:
		raise HTTPException(status_code=404, detail="Test not found or access denied")
	return test


def _previous_submission(db: Session, test: UnifiedTest, username: str) -> Optional[UnifiedTestResponse]:
	return (
		db.query(UnifiedTestResponse)
		.filter(UnifiedTestResponse.test_id == test.id, UnifiedTestResponse.submitted_by == username)
		.first()
	)


@router.get("")
def list_my_tests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	rows = (
		db.query(UnifiedTest)
		.filter(UnifiedTest.created_by == user.username)
		.order_by(UnifiedTest.created_at.desc())
		.all()
	)
	return {"tests": [_summary(t) for t in rows]}


@router.get("/public/{test_link}")
def get_public_test(
	test_link: str,
	user: Optional[User] = Depends(get_optional_user),
	db: Session = Depends(get_db),
):
	test = _active_test(db, test_link)
	is_owner = _is_owner(test, user)
	if not test.is_public and not is_owner:
		raise HTTPException(status_code=403, detail="This test is private")
	# Takers never see the answer key here; show_results only gates what submit returns
	return _detail(test, include_answers=is_owner)


@router.get("/public/{test_link}/status")
def get_submission_status(
	test_link: str,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	test = _active_test(db, test_link)
	previous = _previous_submission(db, test, user.username)
	if previous is None:
		return {"has_submitted": False, "message": "You can take this test"}
	return {
		"has_submitted": True,
		"submitted_at": previous.submitted_at,
		"score": previous.percentage if test.show_results else None,
		"message": "You have already submitted this test",
	}


@router.post("/public/{test_link}/submit")
def submit_test(
	test_link: str,
	req: SubmissionRequest,
	user: Optional[User] = Depends(get_optional_user),
	db: Session = Depends(get_db),
):
	test = _active_test(db, test_link)
	if not test.is_public and not _is_owner(test, user):
		raise HTTPException(status_code=403, detail="This test is private")
	if user is None:
		if not test.allow_anonymous:
			raise HTTPException(status_code=401, detail="Authentication required to submit this test")
	elif _previous_submission(db, test, user.username) is not None:
		raise HTTPException(status_code=403, detail="You have already submitted this test. Only one attempt is allowed.")

	scored = score_submission(
		json.loads(test.questions_json or "[]"),
		[(a.question_id, a.answer) for a in req.answers],
	)
	row = UnifiedTestResponse(
		test_id=test.id,
		test_name=test.test_name,
		submitted_by=user.username if user else None,
		answers_json=json.dumps([asdict(a) for a in scored.answers]),
		total_score=scored.total_score,
		max_score=scored.max_score,
		percentage=scored.percentage,
	)
	db.add(row)
	db.commit()
	logger.info(
		"Submission for %s by %s: %s/%s",
		test.test_link, user.username if user else "anonymous", scored.total_score, scored.max_score,
	)

	body: Dict[str, Any] = {
		"success": True,
		"message": "Test submitted successfully",
		"show_results": test.show_results,
		"score": None,
		"results": None,
	}
	if test.show_results:
		body["score"] = scored.percentage
		body["total_score"] = scored.total_score
		body["max_score"] = scored.max_score
		body["results"] = [asdict(a) for a in scored.answers]
	return body


@router.get("/{test_id}")
def get_my_test(test_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	test = _owned_test(db, test_id, user)
	data = _detail(test, include_answers=True)
	data["access_list_id"] = test.access_list_id
	return {"test": data}


@router.put("/{test_id}")
def update_test(
	test_id: int,
	req: UpdateTestRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	if not req.test_name.strip() or not req.questions:
		raise HTTPException(status_code=400, detail="Test name and questions are required")
	test = _owned_test(db, test_id, user)
	test.test_name = req.test_name.strip()
	test.description = req.description
	test.questions_json = json.dumps([q.model_dump(mode="json", exclude_none=True) for q in req.questions])
	test.time_limit = req.time_limit or test.time_limit
	test.is_public = req.is_public
	test.show_results = req.show_results
	test.allow_anonymous = req.allow_anonymous
	test.access_list_id = req.access_list_id if not req.is_public else None
	db.commit()
	db.refresh(test)
	return {"test": _detail(test, include_answers=True), "message": "Test updated successfully"}


@router.patch("/{test_id}")
def patch_test(
	test_id: int,
	req: PatchTestRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	test = _owned_test(db, test_id, user)
	for name, value in req.model_dump(exclude_none=True).items():
		setattr(test, name, value)
	db.commit()
	db.refresh(test)
	return {"test": _summary(test), "message": "Test updated successfully"}


@router.delete("/{test_id}")
def delete_test(test_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	test = _owned_test(db, test_id, user)
	db.query(UnifiedTestResponse).filter(UnifiedTestResponse.test_id == test.id).delete()
	db.delete(test)
	db.commit()
	logger.info("Deleted test %s for %s", test_id, user.username)
	return {"message": "Test deleted successfully"}
