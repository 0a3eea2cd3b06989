"""Plan limits and usage counters.

Free users get lifetime allowances; paid users get monthly allowances that
roll over on the first request of a new calendar month. All functions take an
``AuthUser`` row and mutate it in place; committing is the caller's job.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .models import AuthUser
from .schemas import QuestionKind


@dataclass(frozen=True)
class PlanLimits:
	tests: int
	mcq: int
	qa: int
	period: str


FREE_PLAN = PlanLimits(tests=5, mcq=10, qa=10, period="total")
PAID_PLAN = PlanLimits(tests=100, mcq=100, qa=100, period="monthly")

SUBSCRIPTION_DAYS = 30


class LimitExceededError(Exception):
	def __init__(self, message: str, *, kind: QuestionKind, remaining: int, upgrade_required: bool) -> None:
		super().__init__(message)
		self.kind = kind
		self.remaining = remaining
		self.upgrade_required = upgrade_required


class TestLimitReachedError(Exception):
	__test__ = False  # not a pytest test class

	def __init__(self, message: str, *, limit: int, is_paid: bool, reset_date: Optional[datetime] = None) -> None:
		super().__init__(message)
		self.limit = limit
		self.is_paid = is_paid
		self.reset_date = reset_date


def plan_for(user: AuthUser) -> PlanLimits:
	return PAID_PLAN if user.is_paid else FREE_PLAN


def _month_start(now: datetime) -> datetime:
	return datetime(now.year, now.month, 1)


def _next_month_start(now: datetime) -> datetime:
	if now.month == 12:
		return datetime(now.year + 1, 1, 1)
	return datetime(now.year, now.month + 1, 1)


def roll_month(user: AuthUser, now: datetime) -> bool:
	"""Reset a paid user's monthly counters once per calendar month."""
	if not user.is_paid:
		return False
	start = user.current_month_start
	if start is not None and (start.year, start.month) == (now.year, now.month):
		return False
	user.monthly_tests_used = 0
	user.mcq_ai_used = 0
	user.question_ai_used = 0
	user.current_month_start = _month_start(now)
	return True


def apply_expiry(user: AuthUser, now: datetime) -> bool:
	if not (user.is_paid and user.expiry_date and now > user.expiry_date):
		return False
	user.is_paid = False
	user.expiry_date = None
	user.tests_limit = FREE_PLAN.tests
	user.mcq_ai_limit = FREE_PLAN.mcq
	user.question_ai_limit = FREE_PLAN.qa
	return True


def upgrade_to_paid(user: AuthUser, now: datetime, days: int = SUBSCRIPTION_DAYS) -> None:
	user.is_paid = True
	if user.expiry_date is None or user.expiry_date <= now:
		user.expiry_date = now + timedelta(days=days)
	user.monthly_tests_limit = PAID_PLAN.tests
	user.mcq_ai_limit = PAID_PLAN.mcq
	user.question_ai_limit = PAID_PLAN.qa
	user.monthly_tests_used = 0
	user.current_month_start = _month_start(now)


def refresh(user: AuthUser, now: datetime) -> None:
	apply_expiry(user, now)
	roll_month(user, now)


def _remaining(limit: Optional[int], used: Optional[int]) -> int:
	return max(0, (limit or 0) - (used or 0))


def check_generation_allowed(user: AuthUser, mcq_count: int, qa_count: int) -> None:
	checks = (
		(QuestionKind.MULTIPLE_CHOICE, mcq_count, user.mcq_ai_used, user.mcq_ai_limit),
		(QuestionKind.OPEN_ENDED, qa_count, user.question_ai_used, user.question_ai_limit),
	)
	for kind, requested, used, limit in checks:
		if requested <= 0 or used + requested <= limit:
			continue
		remaining = _remaining(limit, used)
		prefix = f"{kind.label} generation" if user.is_paid else f"Free {kind.label} generation"
		message = f"{prefix} limit exceeded. You can generate {remaining} more {kind.label}s."
		if not user.is_paid:
			message += " Please upgrade to generate more."
		raise LimitExceededError(message, kind=kind, remaining=remaining, upgrade_required=not user.is_paid)


def check_test_creation_allowed(user: AuthUser, now: datetime) -> None:
	if not user.is_paid:
		if user.tests_created >= user.tests_limit:
			raise TestLimitReachedError(
				"Free test limit reached. Upgrade to create more tests.",
				limit=user.tests_limit,
				is_paid=False,
			)
		return
	if user.monthly_tests_used >= user.monthly_tests_limit:
		raise TestLimitReachedError(
			"Monthly test limit reached. Limit resets next month.",
			limit=user.monthly_tests_limit,
			is_paid=True,
			reset_date=_next_month_start(now),
		)


# Counters are incremented with SQL expressions so the flush emits
# ``SET col = col + n`` and concurrent requests never overwrite each other.
# The attributes are expired after the flush and reload on next access.

def record_generation_usage(user: AuthUser, mcq_used: int, qa_used: int) -> None:
	if mcq_used > 0:
		user.mcq_ai_used = AuthUser.mcq_ai_used + mcq_used
	if qa_used > 0:
		user.question_ai_used = AuthUser.question_ai_used + qa_used


def record_test_created(user: AuthUser) -> None:
	user.tests_created = AuthUser.tests_created + 1
	if user.is_paid:
		user.monthly_tests_used = AuthUser.monthly_tests_used + 1


def usage_summary(user: AuthUser) -> Dict[str, Any]:
	if user.is_paid:
		tests_used, tests_limit = user.monthly_tests_used, user.monthly_tests_limit
	else:
		tests_used, tests_limit = user.tests_created, user.tests_limit
	return {
		"tests": {"used": tests_used, "limit": tests_limit, "remaining": _remaining(tests_limit, tests_used)},
		"mcq_generation": {
			"used": user.mcq_ai_used,
			"limit": user.mcq_ai_limit,
			"remaining": _remaining(user.mcq_ai_limit, user.mcq_ai_used),
		},
		"qa_generation": {
			"used": user.question_ai_used,
			"limit": user.question_ai_limit,
			"remaining": _remaining(user.question_ai_limit, user.question_ai_used),
		},
		"period": plan_for(user).period,
		"is_paid": bool(user.is_paid),
		"expiry_date": user.expiry_date,
	}
