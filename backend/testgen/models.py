from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Integer, Text
from .db import Base


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)

	# Plan; a lapsed expiry_date drops the user back to free limits
	is_paid = Column(Boolean, default=False, nullable=False)
	expiry_date = Column(DateTime, nullable=True)

	tests_created = Column(Integer, default=0, nullable=False)
	tests_limit = Column(Integer, default=5, nullable=False)
	monthly_tests_used = Column(Integer, default=0, nullable=False)
	monthly_tests_limit = Column(Integer, default=100, nullable=False)
	current_month_start = Column(DateTime, nullable=True)

	mcq_ai_used = Column(Integer, default=0, nullable=False)
	mcq_ai_limit = Column(Integer, default=10, nullable=False)
	question_ai_used = Column(Integer, default=0, nullable=False)
	question_ai_limit = Column(Integer, default=10, nullable=False)

	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UnifiedTest(Base):
	__tablename__ = "unified_tests"
	id = Column(Integer, primary_key=True, autoincrement=True)
	test_link = Column(String(32), unique=True, index=True, nullable=False)
	test_name = Column(String(256), nullable=False)
	topic = Column(String(512), nullable=True)
	description = Column(Text, nullable=True)
	questions_json = Column(Text, nullable=False)  # JSON list of question records
	created_by = Column(String(128), index=True, nullable=False)
	time_limit = Column(Integer, default=30, nullable=False)  # minutes
	is_public = Column(Boolean, default=True, nullable=False)
	show_results = Column(Boolean, default=True, nullable=False)
	allow_anonymous = Column(Boolean, default=True, nullable=False)
	is_active = Column(Boolean, default=True, nullable=False)
	access_list_id = Column(String(64), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UnifiedTestResponse(Base):
	__tablename__ = "unified_test_responses"
	id = Column(Integer, primary_key=True, autoincrement=True)
	test_id = Column(Integer, index=True, nullable=False)
	test_name = Column(String(256), nullable=False)
	# Null for anonymous submissions
	submitted_by = Column(String(128), index=True, nullable=True)
	answers_json = Column(Text, nullable=False)  # JSON list of scored answers
	total_score = Column(Integer, default=0, nullable=False)
	max_score = Column(Integer, default=0, nullable=False)
	percentage = Column(Integer, default=0, nullable=False)
	submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
