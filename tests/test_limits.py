from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import make_user
from testgen.cleanup import downgrade_expired_subscriptions
from testgen.limits import (
	FREE_PLAN,
	PAID_PLAN,
	LimitExceededError,
	TestLimitReachedError,
	apply_expiry,
	check_generation_allowed,
	check_test_creation_allowed,
	record_generation_usage,
	record_test_created,
	refresh,
	roll_month,
	upgrade_to_paid,
	usage_summary,
)
from testgen.models import AuthUser
from testgen.schemas import QuestionKind

NOW = datetime(2026, 10, 19, 12, 0)


def test_generation_within_limit_is_allowed():
	check_generation_allowed(make_user(mcq_ai_used=8), 2, 0)


def test_free_mcq_limit_exceeded():
	user = make_user(mcq_ai_used=9)
	with pytest.raises(LimitExceededError) as excinfo:
		check_generation_allowed(user, 2, 0)
	err = excinfo.value
	assert err.kind is QuestionKind.MULTIPLE_CHOICE
	assert err.remaining == 1
	assert err.upgrade_required is True
	assert "upgrade" in str(err)


def test_paid_qa_limit_exceeded_does_not_ask_for_upgrade():
	user = make_user(is_paid=True, question_ai_used=100, question_ai_limit=100)
	with pytest.raises(LimitExceededError) as excinfo:
		check_generation_allowed(user, 0, 1)
	assert excinfo.value.kind is QuestionKind.OPEN_ENDED
	assert excinfo.value.upgrade_required is False


def test_zero_requested_kind_is_not_checked():
	check_generation_allowed(make_user(mcq_ai_used=10), 0, 1)


def test_free_test_limit_is_lifetime():
	user = make_user(tests_created=5)
	with pytest.raises(TestLimitReachedError) as excinfo:
		check_test_creation_allowed(user, NOW)
	assert excinfo.value.limit == 5
	assert excinfo.value.reset_date is None


def test_paid_test_limit_resets_next_month():
	user = make_user(is_paid=True, monthly_tests_used=100)
	with pytest.raises(TestLimitReachedError) as excinfo:
		check_test_creation_allowed(user, NOW)
	assert excinfo.value.reset_date == datetime(2026, 11, 1)


def test_record_usage_and_tests(db_session):
	user = make_user(is_paid=True)
	db_session.add(user)
	db_session.commit()
	record_generation_usage(user, 3, 0)
	record_test_created(user)
	db_session.commit()
	assert user.mcq_ai_used == 3
	assert user.question_ai_used == 0
	assert user.tests_created == 1
	assert user.monthly_tests_used == 1


def test_upgrade_sets_paid_limits_and_expiry():
	user = make_user(monthly_tests_used=7, mcq_ai_used=4)
	upgrade_to_paid(user, NOW)
	assert user.is_paid is True
	assert user.expiry_date == NOW + timedelta(days=30)
	assert user.mcq_ai_limit == PAID_PLAN.mcq
	assert user.question_ai_limit == PAID_PLAN.qa
	assert user.monthly_tests_used == 0
	assert user.mcq_ai_used == 4


def test_upgrade_keeps_future_expiry():
	expiry = NOW + timedelta(days=10)
	user = make_user(is_paid=True, expiry_date=expiry)
	upgrade_to_paid(user, NOW)
	assert user.expiry_date == expiry


def test_expired_subscription_drops_to_free_limits():
	user = make_user(is_paid=True, expiry_date=NOW - timedelta(days=1), mcq_ai_limit=100, question_ai_limit=100)
	assert apply_expiry(user, NOW) is True
	assert user.is_paid is False
	assert user.expiry_date is None
	assert user.mcq_ai_limit == FREE_PLAN.mcq
	assert apply_expiry(user, NOW) is False


def test_month_rollover_resets_paid_counters_once():
	user = make_user(
		is_paid=True,
		current_month_start=datetime(2026, 9, 1),
		monthly_tests_used=40,
		mcq_ai_used=60,
		question_ai_used=20,
	)
	assert roll_month(user, NOW) is True
	assert (user.monthly_tests_used, user.mcq_ai_used, user.question_ai_used) == (0, 0, 0)
	assert user.current_month_start == datetime(2026, 10, 1)
	user.mcq_ai_used = 5
	assert roll_month(user, NOW) is False
	assert user.mcq_ai_used == 5


def test_free_users_never_roll_over():
	user = make_user(mcq_ai_used=6)
	refresh(user, NOW)
	assert user.mcq_ai_used == 6


def test_usage_summary_never_negative():
	summary = usage_summary(make_user(mcq_ai_used=12, tests_created=2))
	assert summary["mcq_generation"] == {"used": 12, "limit": 10, "remaining": 0}
	assert summary["tests"] == {"used": 2, "limit": 5, "remaining": 3}
	assert summary["period"] == "total"
	assert summary["is_paid"] is False


def test_downgrade_expired_subscriptions(db_session):
	db_session.add_all([
		make_user("expired", is_paid=True, expiry_date=NOW - timedelta(days=2)),
		make_user("current", is_paid=True, expiry_date=NOW + timedelta(days=2)),
		make_user("free"),
	])
	db_session.commit()
	assert downgrade_expired_subscriptions(db_session, NOW) == 1
	assert db_session.get(AuthUser, "expired").is_paid is False
	assert db_session.get(AuthUser, "current").is_paid is True


def test_concurrent_usage_updates_both_count(db_session):
	db_session.add(make_user(mcq_ai_used=0))
	db_session.commit()
	other = sessionmaker(bind=db_session.get_bind(), future=True)()
	try:
		first = db_session.get(AuthUser, "alice")
		second = other.get(AuthUser, "alice")
		assert first.mcq_ai_used == second.mcq_ai_used == 0
		record_generation_usage(first, 6, 0)
		record_generation_usage(second, 6, 0)
		db_session.commit()
		other.commit()
	finally:
		other.close()
	assert db_session.get(AuthUser, "alice").mcq_ai_used == 12
