from __future__ import annotations
from datetime import datetime
from typing import List, Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from testgen.db import Base, get_db
from testgen.main import app
from testgen.models import AuthUser
from testgen.routers.auth import open_session
from testgen.routers.generate import get_model_client


class FakeModel:
	"""Scripted stand-in for GeminiClient: pops one response per call."""

	def __init__(self, *responses: Union[str, BaseException]) -> None:
		self.responses: List[Union[str, BaseException]] = list(responses)
		self.prompts: List[str] = []

	async def generate(self, prompt: str) -> str:
		self.prompts.append(prompt)
		item = self.responses.pop(0)
		if isinstance(item, BaseException):
			raise item
		return item


class FakeSleep:
	def __init__(self) -> None:
		self.delays: List[float] = []

	async def __call__(self, delay: float) -> None:
		self.delays.append(delay)


def make_user(username: str = "alice", **overrides) -> AuthUser:
	fields = dict(
		username=username,
		password_hash="not-a-real-hash",
		email=f"{username}@example.com",
		is_paid=False,
		expiry_date=None,
		tests_created=0,
		tests_limit=5,
		monthly_tests_used=0,
		monthly_tests_limit=100,
		current_month_start=None,
		mcq_ai_used=0,
		mcq_ai_limit=10,
		question_ai_used=0,
		question_ai_limit=10,
		created_at=datetime(2026, 1, 1),
		updated_at=datetime(2026, 1, 1),
	)
	fields.update(overrides)
	return AuthUser(**fields)


@pytest.fixture
def db_session():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	Session = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	db = Session()
	try:
		yield db
	finally:
		db.close()
		engine.dispose()


@pytest.fixture
def fake_model():
	return FakeModel()


@pytest.fixture
def client(db_session, fake_model):
	def _get_db():
		yield db_session

	app.dependency_overrides[get_db] = _get_db
	app.dependency_overrides[get_model_client] = lambda: fake_model
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()


@pytest.fixture
def account(db_session):
	user = make_user()
	db_session.add(user)
	db_session.commit()
	return user


@pytest.fixture
def auth_headers(db_session, account):
	token = open_session(db_session, account.username)
	return {"Authorization": f"Bearer {token}"}
