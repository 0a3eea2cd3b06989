import asyncio

import pytest

from conftest import FakeModel, FakeSleep
from testgen.errors import ModelInvocationError
from testgen.retry import invoke_with_retry, is_transient


def _overloaded():
	return ModelInvocationError("The model is overloaded. Please try again later.", status_code=503)


def test_transient_failures_then_success():
	model = FakeModel(_overloaded(), _overloaded(), "[]")
	sleep = FakeSleep()
	result = asyncio.run(invoke_with_retry(model.generate, "prompt", 3, sleep=sleep))
	assert result == "[]"
	assert len(model.prompts) == 3
	assert sleep.delays == [2, 4]


def test_exhaustion_propagates_last_error():
	first, second, last = _overloaded(), _overloaded(), _overloaded()
	model = FakeModel(first, second, last)
	sleep = FakeSleep()
	with pytest.raises(ModelInvocationError) as excinfo:
		asyncio.run(invoke_with_retry(model.generate, "prompt", 3, sleep=sleep))
	assert excinfo.value is last
	assert len(model.prompts) == 3
	assert sleep.delays == [2, 4]


def test_non_transient_error_is_not_retried():
	model = FakeModel(ModelInvocationError("API key not valid", status_code=400), "unused")
	sleep = FakeSleep()
	with pytest.raises(ModelInvocationError):
		asyncio.run(invoke_with_retry(model.generate, "prompt", 3, sleep=sleep))
	assert len(model.prompts) == 1
	assert sleep.delays == []


def test_overload_marker_in_message_counts_as_transient():
	model = FakeModel(RuntimeError("503 Service Unavailable"), "ok")
	sleep = FakeSleep()
	assert asyncio.run(invoke_with_retry(model.generate, "p", 3, sleep=sleep)) == "ok"
	assert sleep.delays == [2]


def test_backoff_is_linear_in_attempt_number():
	model = FakeModel(_overloaded(), _overloaded(), _overloaded(), _overloaded(), "ok")
	sleep = FakeSleep()
	asyncio.run(invoke_with_retry(model.generate, "p", 5, backoff_seconds=1.5, sleep=sleep))
	assert sleep.delays == [1.5, 3.0, 4.5, 6.0]


def test_defaults_come_from_settings():
	model = FakeModel(_overloaded(), _overloaded(), _overloaded())
	sleep = FakeSleep()
	with pytest.raises(ModelInvocationError):
		asyncio.run(invoke_with_retry(model.generate, "p", sleep=sleep))
	assert len(model.prompts) == 3


def test_max_attempts_must_be_positive():
	with pytest.raises(ValueError):
		asyncio.run(invoke_with_retry(FakeModel("x").generate, "p", 0))


def test_is_transient():
	assert is_transient(ModelInvocationError("unavailable", status_code=503))
	assert is_transient(ValueError("Model is OVERLOADED"))
	assert not is_transient(ModelInvocationError("quota exceeded", status_code=429))
	assert not is_transient(ModelInvocationError("Unexpected Gemini response: {}"))
